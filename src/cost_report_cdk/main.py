"""Command line entry point for Cost Report Infrastructure CDK.

Usage:
    cost-report plan                 # Print the evaluated resource graph as JSON
    cost-report check                # Synthesize and run offline template checks
    cost-report check --validate     # Also call CloudFormation ValidateTemplate
    cost-report check --fail-on-warnings  # Treat advisory warnings as failures
"""

import argparse
import json
import sys
from pathlib import Path

import aws_cdk as cdk

from . import logging_config  # noqa: F401  configures structlog on import
from .deployment import build_stack, configuration_from_environment, environment_config, load_config
from .exceptions import CostReportCdkError
from .graph import evaluate
from .settings import get_settings
from .template_checks import run_template_checks, template_body, validate_with_cloudformation
from .tracing import setup_tracing_from_settings, shutdown_tracing


def plan(config_path: Path, environment: str) -> dict:
    """Evaluate the graph for one environment block."""
    env_config = environment_config(load_config(config_path), environment)
    graph = evaluate(configuration_from_environment(env_config))
    return graph.to_dict()


def check(
    config_path: Path,
    environment: str,
    validate: bool = False,
    fail_on_warnings: bool = False,
) -> bool:
    """Synthesize the stack in memory and check its template."""
    env_config = environment_config(load_config(config_path), environment)
    app = cdk.App()
    stack = build_stack(app, environment, env_config)
    template = app.synth().get_stack_by_name(stack.stack_name).template

    report = run_template_checks(template, fail_on_warnings=fail_on_warnings)
    print(f"Template checks: {report.summary()}")
    for failure in report.failures:
        print(f"  ✗ {failure.name}: {failure.detail}")
    for warning in report.warnings:
        print(f"  ! {warning.name}: {warning.detail}")

    if validate:
        validate_with_cloudformation(template_body(template), region=stack.region)
        print("CloudFormation validation passed")
    return report.passed


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="cost-report",
        description="Evaluate and check the Cost and Usage Report infrastructure",
    )
    parser.add_argument("--config", type=Path, default=settings.config_file, help="Path to config.yaml")
    parser.add_argument(
        "--environment",
        default=settings.stack_environment,
        help="Environment block in config.yaml",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("plan", help="Print the evaluated resource graph")
    check_parser = subparsers.add_parser("check", help="Synthesize and check the template")
    check_parser.add_argument(
        "--validate",
        action="store_true",
        help="Also validate with the CloudFormation API (needs credentials)",
    )
    check_parser.add_argument(
        "--fail-on-warnings",
        action="store_true",
        help="Exit non-zero when an advisory check warns",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    setup_tracing_from_settings(get_settings())
    args = build_parser().parse_args(argv)
    environment = args.environment.upper()

    try:
        if args.command == "plan":
            print(json.dumps(plan(args.config, environment), indent=2))
            return 0
        return 0 if check(
            args.config,
            environment,
            validate=args.validate,
            fail_on_warnings=args.fail_on_warnings,
        ) else 1
    except CostReportCdkError as e:
        print(f"\n❌ {type(e).__name__}: {e}\n", file=sys.stderr)
        return 1
    finally:
        shutdown_tracing()


if __name__ == "__main__":
    sys.exit(main())
