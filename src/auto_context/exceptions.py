"""Exception hierarchy for setup-time configuration errors.

The classifiers themselves never raise on missing or noisy signals; only
rule-set loading and rule construction can fail.
"""

from __future__ import annotations


class AutoContextError(Exception):
    """Base class for every error raised by the package."""


class InvalidRuleSet(AutoContextError, ValueError):
    """A rule file or payload could not be parsed into :class:`ContextRule`."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class RuleTemplateNotFound(AutoContextError, KeyError):
    """No rule template is registered under the requested id."""
