"""CLI commands for running the generation pipeline over JSON files."""

import argparse
import json
import re
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from ..config.runtime import get_settings
from ..errors import CampaignForgeError
from ..modules.grouping.engine import HierarchicalGrouper
from ..modules.rules.engine import RuleEngine
from ..modules.transforms.engine import TransformEngine
from ..modules.validation.reddit import RedditAdValidator
from ..modules.validation.targeting import validate_targeting_config
from ..observability import configure_logging, get_logger
from ..services.pipeline_service import CampaignPipelineService

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def load_json(path: Path, expect: type) -> Any:
    """Load a JSON file and check its top-level type. Exits on failure."""
    if not path.exists():
        print(f"Error: file not found: {path}", file=sys.stderr)
        sys.exit(1)
    with open(path, encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            print(f"Error: invalid JSON in {path}: {e}", file=sys.stderr)
            sys.exit(1)
    if not isinstance(raw, expect):
        kind = "a list" if expect is list else "an object"
        print(f"Error: {path} must contain {kind}.", file=sys.stderr)
        sys.exit(1)
    return raw


def _snake_keys(item: dict[str, Any]) -> dict[str, Any]:
    return {_CAMEL_RE.sub("_", key).lower(): value for key, value in item.items()}


def _dump(payload: Any) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True)
    elif isinstance(payload, list):
        payload = [
            item.model_dump(mode="json", by_alias=True) if isinstance(item, BaseModel) else item
            for item in payload
        ]
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _run(args: argparse.Namespace) -> None:
    settings = get_settings()
    if args.command == "targeting":
        result = validate_targeting_config(load_json(args.config, dict))
        _dump(result.to_dict())
        if not result.is_valid:
            sys.exit(1)
        return
    rows = load_json(args.rows, list)

    if args.command == "group":
        config = load_json(args.config, dict)
        _dump(HierarchicalGrouper.from_settings(settings).group_rows(rows, config))
    elif args.command == "rules":
        rules = load_json(args.rules, list)
        engine = RuleEngine.from_settings(settings)
        if args.filter:
            _dump(engine.filter_dataset(rules, rows))
        else:
            _dump(engine.process_dataset(rules, rows))
    elif args.command == "transform":
        config = load_json(args.config, dict)
        engine = TransformEngine(sample_size=settings.transform_sample_size)
        if args.preview is not None:
            _dump(engine.preview(config, rows, limit=args.preview))
        else:
            _dump(engine.execute(config, rows))
    elif args.command == "validate":
        validator = RedditAdValidator.from_settings(settings)
        report = []
        for index, item in enumerate(rows):
            result = validator.validate(_snake_keys(item))
            report.append(
                {
                    "index": index,
                    "valid": result.valid,
                    "errors": [
                        {"field": e.field, "code": e.code, "message": e.message} for e in result.errors
                    ],
                }
            )
        _dump({"valid": all(r["valid"] for r in report), "ads": report})
    elif args.command == "pipeline":
        config = load_json(args.config, dict)
        rules = load_json(args.rules, list) if args.rules else None
        strategy: dict[str, Any] = load_json(args.strategy_config, dict) if args.strategy_config else {}
        if args.strategy:
            strategy["strategy"] = args.strategy
        service = CampaignPipelineService(settings=settings, logger=get_logger("cli"))
        _dump(
            service.run(
                rows,
                config,
                rules=rules,
                platform=args.platform,
                strategy_config=strategy or None,
            )
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate ad campaigns from tabular rows")
    parser.add_argument("--log-level", type=str, default=None, help="Override CAMPAIGNFORGE_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    group_parser = subparsers.add_parser("group", help="Group rows into campaigns, ad groups and ads")
    group_parser.add_argument("--rows", type=Path, required=True, help="JSON file with a list of rows")
    group_parser.add_argument("--config", type=Path, required=True, help="JSON grouping config")

    rules_parser = subparsers.add_parser("rules", help="Apply rules to every row")
    rules_parser.add_argument("--rows", type=Path, required=True, help="JSON file with a list of rows")
    rules_parser.add_argument("--rules", type=Path, required=True, help="JSON file with a list of rules")
    rules_parser.add_argument("--filter", action="store_true", help="Print only kept, modified rows")

    transform_parser = subparsers.add_parser("transform", help="Group-by and aggregate rows")
    transform_parser.add_argument("--rows", type=Path, required=True, help="JSON file with a list of rows")
    transform_parser.add_argument("--config", type=Path, required=True, help="JSON transform config")
    transform_parser.add_argument("--preview", type=int, default=None, help="Limit output to N groups")

    validate_parser = subparsers.add_parser("validate", help="Validate ads against Reddit rules")
    validate_parser.add_argument("--rows", type=Path, required=True, help="JSON file with a list of ads")

    targeting_parser = subparsers.add_parser("targeting", help="Validate a targeting config")
    targeting_parser.add_argument("--config", type=Path, required=True, help="JSON targeting config")

    pipeline_parser = subparsers.add_parser("pipeline", help="Run rules, grouping and fallback end to end")
    pipeline_parser.add_argument("--rows", type=Path, required=True, help="JSON file with a list of rows")
    pipeline_parser.add_argument("--config", type=Path, required=True, help="JSON grouping config")
    pipeline_parser.add_argument("--rules", type=Path, default=None, help="JSON file with a list of rules")
    pipeline_parser.add_argument("--platform", type=str, default="reddit", help="Target platform (default: reddit)")
    pipeline_parser.add_argument(
        "--strategy",
        choices=["skip", "truncate", "use_fallback"],
        default=None,
        help="Fallback strategy (default: CAMPAIGNFORGE_DEFAULT_FALLBACK_STRATEGY)",
    )
    pipeline_parser.add_argument(
        "--strategy-config",
        type=Path,
        default=None,
        help="JSON strategy config with fallbackAd / truncationConfig",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level or get_settings().log_level)

    if args.command is None:
        parser.print_help()
        return
    try:
        _run(args)
    except CampaignForgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
