"""
Command-line interface for the Stake Authority Batcher.

Provides commands for running bulk stake operations and inspecting the
stake accounts of a vault.
"""

import argparse
import asyncio
import sys

import structlog
from pydantic import ValidationError

from stake_batcher import __version__
from stake_batcher.config import AccountSource, BatcherConfig, OperationKind, ReportBackend, set_config
from stake_batcher.core.models import RunSummary
from stake_batcher.core.orchestrator import BatchOrchestrator
from stake_batcher.directory import create_directory
from stake_batcher.errors import ConfigValidationError, FatalRunError, ResolutionError
from stake_batcher.signing.fireblocks import FireblocksResolver

logger = structlog.get_logger(__name__)


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    import logging
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stdout,
    )


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--current-vault",
        help="Vault id holding the current authority",
    )
    parser.add_argument(
        "--source",
        choices=[s.value for s in AccountSource],
        help="Stake account directory (default: from environment)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Output logs in JSON format",
    )


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--rpc-url",
        help="Solana JSON-RPC endpoint",
    )
    parser.add_argument(
        "--report-backend",
        choices=[b.value for b in ReportBackend],
        help="Where to persist results (default: csv)",
    )
    parser.add_argument(
        "--report-dir",
        help="Directory for CSV reports (default: reports)",
    )
    parser.add_argument(
        "--groups-per-request",
        dest="groups_per_signing_request",
        type=int,
        help="Group transactions per signing request (default: 1)",
    )
    parser.add_argument(
        "--signing-timeout",
        dest="signing_timeout_seconds",
        type=float,
        help="Seconds to wait for each signing request (default: 1800)",
    )
    parser.add_argument(
        "--skip-preflight",
        action="store_true",
        default=None,
        help="Skip preflight simulation when broadcasting",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="stake-batcher",
        description="Bulk Solana stake account operations signed through Fireblocks",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Change authority command
    change_parser = subparsers.add_parser(
        "change-authority",
        help="Move staker and withdrawer authority to another vault",
    )
    _add_common_arguments(change_parser)
    change_parser.add_argument(
        "--new-vault",
        help="Vault id that becomes the new authority",
    )
    _add_run_arguments(change_parser)

    # Withdraw command
    withdraw_parser = subparsers.add_parser(
        "withdraw",
        help="Withdraw idle stake account balances back to the authority",
    )
    _add_common_arguments(withdraw_parser)
    withdraw_parser.add_argument(
        "--include-active",
        action="store_true",
        help="Do not skip accounts whose stake is still active",
    )
    _add_run_arguments(withdraw_parser)

    # List accounts command
    list_parser = subparsers.add_parser(
        "list-accounts",
        help="List the stake accounts controlled by a vault",
    )
    _add_common_arguments(list_parser)

    return parser


def build_config(args: argparse.Namespace) -> BatcherConfig:
    """Create configuration from the environment, overridden by arguments."""
    overrides = {
        "current_authority_vault_id": args.current_vault,
        "account_source": args.source,
        "log_level": args.log_level,
        "log_json": args.log_json,
        "new_authority_vault_id": getattr(args, "new_vault", None),
        "solana_rpc_url": getattr(args, "rpc_url", None),
        "report_backend": getattr(args, "report_backend", None),
        "report_dir": getattr(args, "report_dir", None),
        "groups_per_signing_request": getattr(args, "groups_per_signing_request", None),
        "signing_timeout_seconds": getattr(args, "signing_timeout_seconds", None),
        "skip_preflight": getattr(args, "skip_preflight", None),
    }

    if args.command == "change-authority":
        overrides["operation"] = OperationKind.CHANGE_AUTHORITY
    elif args.command == "withdraw":
        overrides["operation"] = OperationKind.WITHDRAW
        if args.include_active:
            overrides["withdraw_require_inactive"] = False

    return BatcherConfig(**{k: v for k, v in overrides.items() if v is not None})


def print_summary(summary: RunSummary) -> None:
    """Print the outcome of a run."""
    print()
    print(f"Operation: {summary.operation}")
    print(f"Accounts: {summary.total_accounts} processed, "
          f"{summary.skipped_accounts} skipped, {summary.malformed_accounts} malformed")
    print(f"Groups: {summary.groups_succeeded} succeeded, {summary.groups_failed} failed "
          f"({len(summary.results)} of {summary.planned_groups} attempted)")
    print(f"Accounts succeeded: {summary.accounts_succeeded}")
    print(f"Accounts failed: {summary.accounts_failed}")
    print(f"Report: {summary.report_location}")


async def run_operation(config: BatcherConfig) -> RunSummary:
    """Run a bulk operation."""
    orchestrator = BatchOrchestrator(config)

    # Set up signal handlers
    loop = asyncio.get_running_loop()

    def signal_handler():
        print("\nStopping after the current group...")
        orchestrator.stop()

    try:
        import signal
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)
    except NotImplementedError:
        pass  # Signals not available on Windows

    print(f"Starting Stake Authority Batcher v{__version__}")
    print(f"Operation: {config.operation.value}")
    print(f"Current authority vault: {config.current_authority_vault_id}")
    if config.operation == OperationKind.CHANGE_AUTHORITY:
        print(f"New authority vault: {config.new_authority_vault_id}")
    print()

    return await orchestrator.run()


async def list_accounts(config: BatcherConfig) -> None:
    """List the stake accounts controlled by the current authority vault."""
    if not config.current_authority_vault_id:
        raise ConfigValidationError("current_authority_vault_id is required")

    resolver = FireblocksResolver.from_config(config)
    directory = create_directory(config)

    await resolver.connect()
    await directory.connect()
    try:
        vault_id = config.current_authority_vault_id
        try:
            address = await resolver.resolve_address(vault_id)
        except Exception as e:
            raise ResolutionError(f"Failed to resolve address for vault {vault_id}: {e}") from e
        accounts = await directory.list_stake_accounts(address)
    finally:
        await directory.disconnect()
        await resolver.disconnect()

    print(f"Authority: {address}")
    print(f"Found {len(accounts)} stake account(s):")
    print()
    for account in accounts:
        lamports = f"{account.lamports / 1_000_000_000:.9f} SOL" if account.lamports is not None else "unknown"
        print(f"  {account.address}  {lamports}  {account.status or 'unknown'}")


def main() -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config = build_config(args)
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)
    set_config(config)

    # Setup logging
    setup_logging(config.log_level, config.log_json)

    try:
        if args.command == "list-accounts":
            asyncio.run(list_accounts(config))
        else:
            summary = asyncio.run(run_operation(config))
            print_summary(summary)
    except FatalRunError as e:
        logger.error("batch_run_aborted", error_type=type(e).__name__, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
