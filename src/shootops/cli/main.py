"""
shootops command line.

Usage:
    shootops extensions required --shoot shoot.yaml [--seed seed.yaml] [--registrations regs.yaml]
    shootops extensions check --shoot shoot.yaml --installations installations.yaml [--seed seed.yaml]
"""

from __future__ import annotations

import argparse
from typing import Sequence

from shootops.cli import ux
from shootops.core.errors import ShootOpsError, format_error_message, main_with_error_handling
from shootops.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shootops", description="Shoot orchestration tooling")
    parser.add_argument("--log-level", default=None, help="Log level (default: SHOOTOPS_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command")

    extensions_parser = subparsers.add_parser("extensions", help="Required extension checks")
    extensions_subparsers = extensions_parser.add_subparsers(dest="extensions_command")

    required_parser = extensions_subparsers.add_parser(
        "required", help="Print the (kind, type) extensions a shoot needs"
    )
    required_parser.add_argument("--shoot", required=True, help="Shoot description (YAML)")
    required_parser.add_argument("--seed", help="Seed description (YAML)")
    required_parser.add_argument("--registrations", help="Controller registrations (YAML)")
    required_parser.add_argument("--output", choices=["table", "json"], default="table")

    check_parser = extensions_subparsers.add_parser(
        "check", help="Fail if a required extension is not installed and healthy"
    )
    check_parser.add_argument("--shoot", required=True, help="Shoot description (YAML)")
    check_parser.add_argument("--installations", required=True, help="Registrations and installations (YAML)")
    check_parser.add_argument("--seed", help="Seed description (YAML)")
    check_parser.add_argument("--output", choices=["table", "json"], default="table")

    return parser


def _run_extensions(args: argparse.Namespace) -> int:
    from shootops.cli.extensions import check_command, required_command

    if args.extensions_command == "required":
        return required_command(
            args.shoot,
            seed_file=args.seed,
            registrations_file=args.registrations,
            output_format=args.output,
        )
    return check_command(
        args.shoot,
        args.installations,
        seed_file=args.seed,
        output_format=args.output,
    )


@main_with_error_handling()
def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    if args.command == "extensions" and args.extensions_command:
        try:
            return _run_extensions(args)
        except ShootOpsError as exc:
            ux.error(format_error_message(exc))
            raise

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
