"""Context rules CRUD routes."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from auto_context.api.schemas import TemplateRuleRequest
from auto_context.engine.default_rules import RULE_TEMPLATES, create_rule_from_template
from auto_context.engine.rules import validate_rule
from auto_context.exceptions import RuleTemplateNotFound
from auto_context.models import ContextRule
from auto_context.streaming.trackers import TrackerRegistry

router = APIRouter(tags=["rules"])


def _registry() -> TrackerRegistry:
    from auto_context.api.server import _registry as registry

    if registry is None:
        raise HTTPException(503, "Rule engine not ready.")
    return registry


def _add(registry: TrackerRegistry, rule: ContextRule) -> dict:
    errors = validate_rule(rule)
    if errors:
        raise HTTPException(422, detail=errors)
    if any(r.id == rule.id for r in registry.rules):
        raise HTTPException(409, f"Rule {rule.id!r} already exists.")
    registry.set_rules([*registry.rules, rule])
    return {"rule_id": rule.id}


@router.get("/rules")
async def list_rules():
    from auto_context.api.server import _registry as registry

    if registry is None:
        return []
    return [r.model_dump(mode="json", exclude_none=True) for r in registry.rules]


@router.get("/rules/templates")
async def list_templates():
    return [t.model_dump() for t in RULE_TEMPLATES]


@router.post("/rules", status_code=201)
async def add_rule(rule: ContextRule):
    return _add(_registry(), rule)


@router.post("/rules/templates/{template_id}", status_code=201)
async def add_rule_from_template(template_id: str, req: TemplateRuleRequest | None = None):
    registry = _registry()
    try:
        rule = create_rule_from_template(template_id, **(req.overrides if req else {}))
    except RuleTemplateNotFound:
        raise HTTPException(404, f"Template {template_id!r} not found.")
    except ValidationError as exc:
        raise HTTPException(422, detail=exc.errors(include_url=False, include_context=False))
    return _add(registry, rule)


@router.delete("/rules/{rule_id}")
async def delete_rule(rule_id: str):
    registry = _registry()
    remaining = [r for r in registry.rules if r.id != rule_id]
    if len(remaining) == len(registry.rules):
        raise HTTPException(404, "Rule not found.")
    registry.set_rules(remaining)
    return {"removed": True}
