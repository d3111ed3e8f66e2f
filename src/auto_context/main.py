"""Application entrypoint — start the API server or run one-off commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import structlog
import uvicorn
from pydantic import ValidationError

from auto_context.config import get_settings
from auto_context.engine.default_rules import default_rules
from auto_context.engine.rules import load_rules, rules_to_json, sort_rules
from auto_context.exceptions import InvalidRuleSet
from auto_context.logger import setup_logging
from auto_context.models import ContextTick
from auto_context.streaming.trackers import TrackerRegistry

logger = structlog.get_logger(__name__)


def _evaluate(path: str, rules_file: str | None, as_json: bool) -> int:
    settings = get_settings()
    rules_file = rules_file or settings.rules_file
    rules = load_rules(rules_file) if rules_file else default_rules()
    registry = TrackerRegistry.from_settings(rules, settings)

    stream = sys.stdin if path == "-" else Path(path).open(encoding="utf-8")
    try:
        for lineno, line in enumerate(stream, start=1):
            if not line.strip():
                continue
            try:
                tick = ContextTick.model_validate_json(line)
            except ValidationError as exc:
                logger.error("cli.invalid_tick", line=lineno, errors=exc.error_count())
                return 1
            decision = registry.process(tick)
            print(decision.model_dump_json() if as_json else decision.label)
    finally:
        if stream is not sys.stdin:
            stream.close()
    return 0


def _rules(validate: str | None, export: bool) -> int:
    if validate:
        try:
            rules = load_rules(validate)
        except InvalidRuleSet as exc:
            print(f"{validate}: {exc}", file=sys.stderr)
            for err in exc.errors:
                print(f"  - {err}", file=sys.stderr)
            return 1
        print(f"{validate}: {len(rules)} valid rules")
        return 0

    rules = default_rules()
    if export:
        print(rules_to_json(rules))
        return 0
    for rule in sort_rules(rules):
        print(f"{rule.priority:>6g}  {rule.id:<24} {rule.result}")
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="auto-context",
        description="Automatic context classification for air-quality exposure.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── serve ─────────────────────────────────────────────────
    serve_parser = sub.add_parser("serve", help="Start the API server.")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")

    # ── evaluate ──────────────────────────────────────────────
    eval_parser = sub.add_parser("evaluate", help="Label a JSONL file of ticks ('-' for stdin).")
    eval_parser.add_argument("ticks")
    eval_parser.add_argument("--rules", default=None, help="JSON rule file replacing the defaults.")
    eval_parser.add_argument("--json", action="store_true", help="Print full decisions.")

    # ── rules ─────────────────────────────────────────────────
    rules_parser = sub.add_parser("rules", help="List the default rules or validate a rule file.")
    rules_parser.add_argument("--validate", metavar="FILE", default=None)
    rules_parser.add_argument("--export", action="store_true", help="Print the defaults as JSON.")

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    if args.command == "serve":
        uvicorn.run(
            "auto_context.api.server:app",
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
            reload=args.reload,
        )
    elif args.command == "evaluate":
        try:
            code = _evaluate(args.ticks, args.rules, args.json)
        except (InvalidRuleSet, OSError) as exc:
            print(f"error: {exc}", file=sys.stderr)
            code = 1
        sys.exit(code)
    elif args.command == "rules":
        sys.exit(_rules(args.validate, args.export))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
