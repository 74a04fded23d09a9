from __future__ import annotations

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from stakesync.adapters.keys import parse_pubkey
from stakesync.app import (
    DEFAULT_FEE_LIMIT_CB,
    RunContext,
    SyncResult,
    create_pool,
    decrease_validator_stake,
    increase_validator_stake,
    list_pool,
    set_staker,
    sync_delegation,
    sync_pool,
    sync_validator_list,
    update_pool,
)
from stakesync.config import ConfigurationError, configure_logging, get_cluster_config
from stakesync.domain.errors import ValidationError
from stakesync.domain.model import UpdateCtrl
from stakesync.domain.transactions import SendMode

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from solders.pubkey import Pubkey

log = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile a stake pool with its config file")
    parser.add_argument(
        "--url",
        type=str,
        help="JSON-RPC endpoint (defaults to STAKESYNC_RPC_URL or mainnet-beta)",
    )
    parser.add_argument(
        "--keypair",
        type=str,
        help="Payer keypair file (defaults to STAKESYNC_KEYPAIR or the solana CLI default)",
    )
    parser.add_argument(
        "--commitment",
        type=str,
        choices=("processed", "confirmed", "finalized"),
        help="Commitment level for reads and confirmations",
    )
    parser.add_argument(
        "--send-mode",
        type=SendMode,
        choices=list(SendMode),
        default=SendMode.SEND_ACTUAL,
        help="Send, only simulate, or dump base64 transactions (default: %(default)s)",
    )
    parser.add_argument(
        "--fee-limit-cb",
        type=int,
        default=DEFAULT_FEE_LIMIT_CB,
        help="Max priority fee per transaction in lamports, 0 to disable (default: %(default)s)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_delegation_cmd = subparsers.add_parser(
        "sync-delegation",
        help="(Staker only) sync target stake delegation amounts",
    )
    sync_delegation_cmd.add_argument("config", help="Path to sync delegation config file")

    sync_pool_cmd = subparsers.add_parser(
        "sync-pool",
        help="(Manager only) sync fees, authorities, staker and manager with a pool config file",
    )
    sync_pool_cmd.add_argument("config", help="Path to pool config file")

    sync_validator_list_cmd = subparsers.add_parser(
        "sync-validator-list",
        help="(Staker only) sync validator list entries and preferred validators",
    )
    sync_validator_list_cmd.add_argument("config", help="Path to pool config file")

    set_staker_cmd = subparsers.add_parser(
        "set-staker",
        help="(Staker only) set a new staker from a pool config file",
    )
    set_staker_cmd.add_argument("config", help="Path to pool config file with the new staker")

    update = subparsers.add_parser("update", help="Run the epoch update crank for a stake pool")
    update.add_argument("pool", help="Pubkey of the pool to update")
    update.add_argument(
        "--ctrl",
        type=UpdateCtrl,
        choices=list(UpdateCtrl),
        default=UpdateCtrl.IF_NEEDED,
        help="How to run the update (default: %(default)s)",
    )
    update.add_argument(
        "--no-merge",
        action="store_true",
        help="Do not merge transient stake accounts while updating the validator list",
    )

    list_cmd = subparsers.add_parser(
        "list",
        help="Print the current state of a stake pool as a pool config file",
    )
    list_cmd.add_argument("pool", help="Pubkey or keypair file of the stake pool")
    list_cmd.add_argument(
        "--validators",
        action="store_true",
        help="Also include the validator list",
    )

    create_pool_cmd = subparsers.add_parser(
        "create-pool",
        help="(Manager only) create a new stake pool from a pool config file",
    )
    create_pool_cmd.add_argument("config", help="Path to pool config file of the new pool")

    for name, verb in (
        ("increase-validator-stake", "Increase"),
        ("decrease-validator-stake", "Decrease"),
    ):
        stake_cmd = subparsers.add_parser(
            name,
            help=f"(Staker only) {verb} the stake delegated to one validator of the pool",
        )
        stake_cmd.add_argument("config", help="Path to pool config file")
        stake_cmd.add_argument("validator", help="Vote account of the validator")
        stake_cmd.add_argument("stake", help="Amount of SOL to move. Also accepts 'all'.")

    return parser.parse_args(list(argv))


def _parse_sol_amount(value: str) -> int | None:
    """Lamports for a SOL amount, or ``None`` for ``all``."""

    normalized = value.strip().lower()
    if normalized == "all":
        return None
    try:
        sol = Decimal(normalized)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid SOL amount: {value}") from exc
    if not sol.is_finite() or sol < 0:
        raise ValueError(f"Invalid SOL amount: {value}")
    lamports = sol * LAMPORTS_PER_SOL
    if lamports != lamports.to_integral_value():
        raise ValueError(f"SOL amount has more than 9 decimal places: {value}")
    return int(lamports)


def _parse_pubkey(value: str) -> Pubkey:
    try:
        return parse_pubkey(value)
    except ConfigurationError as exc:
        raise ValueError(f"Invalid pubkey or keypair path: {value}") from exc


def _build_context(args: argparse.Namespace) -> RunContext:
    if args.fee_limit_cb < 0:
        raise ValueError("Fee limit must be non-negative")
    cluster = get_cluster_config(
        rpc_url=args.url,
        keypair_path=args.keypair,
        commitment=args.commitment,
    )
    return RunContext.from_cluster(
        cluster,
        send_mode=args.send_mode,
        fee_limit_cb=args.fee_limit_cb,
    )


def _run(args: argparse.Namespace, context: RunContext) -> SyncResult:
    match args.command:
        case "sync-delegation":
            return sync_delegation(context, args.config)
        case "sync-pool":
            return sync_pool(context, args.config)
        case "sync-validator-list":
            return sync_validator_list(context, args.config)
        case "set-staker":
            return set_staker(context, args.config)
        case "update":
            return update_pool(
                context,
                _parse_pubkey(args.pool),
                ctrl=args.ctrl,
                no_merge=args.no_merge,
            )
        case "list":
            return list_pool(context, _parse_pubkey(args.pool), verbose=args.validators)
        case "create-pool":
            return create_pool(context, args.config)
        case "increase-validator-stake":
            return increase_validator_stake(
                context,
                args.config,
                _parse_pubkey(args.validator),
                _parse_sol_amount(args.stake),
            )
        case "decrease-validator-stake":
            return decrease_validator_stake(
                context,
                args.config,
                _parse_pubkey(args.validator),
                _parse_sol_amount(args.stake),
            )
        case _:
            raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        if parsed_args.verbose:
            configure_logging(level=logging.DEBUG, force=True)
        context = _build_context(parsed_args)
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        result = _run(parsed_args, context)
    except (ValueError, ValidationError, ConfigurationError):
        log.exception("Invalid configuration")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)

    log.info(
        "Finished %s: changes=%d, transactions=%d",
        parsed_args.command,
        len(result.changes),
        len(result.signatures),
    )


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
