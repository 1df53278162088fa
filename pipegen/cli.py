"""CLI entrypoints for pipegen commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .errors import PipegenError, SpecValidationError
from .logging import configure_logging
from .models import MergeStrategy
from .orchestrator import Orchestrator


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pipegen",
        description="Generate GitLab CI pipelines from repository analysis and manual settings.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a repository and print the detected project profile.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    _add_path_argument(analyze_parser)
    analyze_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full analysis result as JSON.",
    )

    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate a .gitlab-ci.yml for a repository.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    _add_path_argument(generate_parser)
    generate_parser.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in MergeStrategy],
        help="How to combine analysis findings with manual settings.",
    )
    generate_parser.add_argument(
        "--config",
        help="Configuration file to use instead of <path>/.pipegen.yml.",
    )
    generate_parser.add_argument(
        "--output",
        help="Where to write the pipeline (defaults to <path>/.gitlab-ci.yml).",
    )
    generate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the pipeline instead of writing it.",
    )

    templates_parser = subparsers.add_parser(
        "templates",
        help="List the available pipeline templates.",
    )
    _add_verbose_option(templates_parser, suppress_default=True)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for pipegen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    orchestrator = Orchestrator()

    if args.command == "analyze":
        try:
            analysis = orchestrator.run_analysis(args.path)
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except RuntimeError as exc:
            parser.exit(1, f"pipegen analyze failed: {exc}\nRun with --verbose for more details.\n")
        if args.json:
            print(json.dumps(analysis.to_dict(), indent=2))
            return
        print(f"Project type: {analysis.detected_type} ({analysis.type_confidence.name.lower()})")
        if analysis.framework:
            version = f" {analysis.framework.version}" if analysis.framework.version else ""
            print(f"Framework: {analysis.framework.name}{version}")
        if analysis.build_tool:
            print(f"Build tool: {analysis.build_tool.name}")
        print(f"Dependencies: {len(analysis.dependencies)}")
        print(f"Confidence: {analysis.confidence.name.lower()}")
        for warning in analysis.warnings:
            print(f"warning: {warning}")
    elif args.command == "generate":
        try:
            outcome = orchestrator.run_generate(
                args.path,
                strategy=args.strategy,
                config_path=args.config,
                output=args.output,
                dry_run=bool(args.dry_run),
            )
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except SpecValidationError as exc:
            details = "".join(f"  - {issue}\n" for issue in exc.issues)
            parser.exit(1, f"pipegen generate failed: {exc.args[0]}\n{details}")
        except PipegenError as exc:
            parser.exit(1, f"pipegen generate failed: {exc}\n")
        except RuntimeError as exc:
            parser.exit(1, f"pipegen generate failed: {exc}\nRun with --verbose for more details.\n")
        for warning in outcome.spec.warnings:
            print(f"warning: {warning}", file=sys.stderr)
        if outcome.dry_run:
            print(outcome.content, end="")
        else:
            print(f"Pipeline written to {_relativize(outcome.path)}")
    elif args.command == "templates":
        for template in orchestrator.list_templates():
            types = ", ".join(template["project_types"])
            print(f"{template['name']}: {template['description']} [{types}]")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
