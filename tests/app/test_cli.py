from __future__ import annotations

import argparse

import pytest
from solders.pubkey import Pubkey

from stakesync.app import SyncResult
from stakesync.domain.errors import ValidationError
from stakesync.domain.model import UpdateCtrl
from stakesync.domain.transactions import SendMode
from stakesync.ui import cli as cli_module

CONTEXT = object()


@pytest.fixture
def built_args(monkeypatch: pytest.MonkeyPatch) -> list[argparse.Namespace]:
    captured: list[argparse.Namespace] = []

    def fake_build_context(args: argparse.Namespace) -> object:
        captured.append(args)
        return CONTEXT

    monkeypatch.setattr(cli_module, "_build_context", fake_build_context)
    return captured


def test_sync_delegation_with_global_flags(
    monkeypatch: pytest.MonkeyPatch, built_args: list[argparse.Namespace]
) -> None:
    captured: dict[str, object] = {}

    def fake_sync(context: object, config: str) -> SyncResult:
        captured.update(context=context, config=config)
        return SyncResult()

    monkeypatch.setattr(cli_module, "sync_delegation", fake_sync)

    cli_module.main(
        ["--send-mode", "sim-only", "--fee-limit-cb", "0", "sync-delegation", "pool.toml"]
    )

    assert captured == {"context": CONTEXT, "config": "pool.toml"}
    [args] = built_args
    assert args.send_mode is SendMode.SIM_ONLY
    assert args.fee_limit_cb == 0


def test_increase_parses_sol_amount(
    monkeypatch: pytest.MonkeyPatch, built_args: list[argparse.Namespace]
) -> None:
    del built_args
    captured: dict[str, object] = {}
    vote = Pubkey.new_unique()

    def fake_increase(
        context: object, config: str, validator: Pubkey, lamports: int | None
    ) -> SyncResult:
        captured.update(vote=validator, lamports=lamports)
        return SyncResult()

    monkeypatch.setattr(cli_module, "increase_validator_stake", fake_increase)

    cli_module.main(["increase-validator-stake", "pool.toml", str(vote), "1.5"])

    assert captured == {"vote": vote, "lamports": 1_500_000_000}


def test_decrease_all_passes_no_amount(
    monkeypatch: pytest.MonkeyPatch, built_args: list[argparse.Namespace]
) -> None:
    del built_args
    captured: dict[str, object] = {}

    def fake_decrease(
        context: object, config: str, validator: Pubkey, lamports: int | None
    ) -> SyncResult:
        captured.update(lamports=lamports)
        return SyncResult()

    monkeypatch.setattr(cli_module, "decrease_validator_stake", fake_decrease)

    cli_module.main(["decrease-validator-stake", "pool.toml", str(Pubkey.new_unique()), "ALL"])

    assert captured == {"lamports": None}


def test_update_passes_ctrl_and_merge_flag(
    monkeypatch: pytest.MonkeyPatch, built_args: list[argparse.Namespace]
) -> None:
    del built_args
    captured: dict[str, object] = {}
    pool = Pubkey.new_unique()

    def fake_update(
        context: object, target: Pubkey, *, ctrl: UpdateCtrl, no_merge: bool
    ) -> SyncResult:
        captured.update(pool=target, ctrl=ctrl, no_merge=no_merge)
        return SyncResult()

    monkeypatch.setattr(cli_module, "update_pool", fake_update)

    cli_module.main(["update", str(pool), "--ctrl", str(UpdateCtrl.FORCE_ALL), "--no-merge"])

    assert captured == {"pool": pool, "ctrl": UpdateCtrl.FORCE_ALL, "no_merge": True}


def test_list_passes_validators_flag(
    monkeypatch: pytest.MonkeyPatch, built_args: list[argparse.Namespace]
) -> None:
    captured: dict[str, object] = {}
    pool = Pubkey.new_unique()

    def fake_list(context: object, address: Pubkey, *, verbose: bool) -> SyncResult:
        captured.update(pool=address, verbose=verbose)
        return SyncResult()

    monkeypatch.setattr(cli_module, "list_pool", fake_list)

    cli_module.main(["--verbose", "list", str(pool), "--validators"])

    assert captured == {"pool": pool, "verbose": True}
    [args] = built_args
    assert args.verbose


def test_create_pool_passes_config(
    monkeypatch: pytest.MonkeyPatch, built_args: list[argparse.Namespace]
) -> None:
    del built_args
    captured: dict[str, object] = {}

    def fake_create(context: object, config: str) -> SyncResult:
        captured.update(context=context, config=config)
        return SyncResult()

    monkeypatch.setattr(cli_module, "create_pool", fake_create)

    cli_module.main(["--send-mode", "sim-only", "create-pool", "new-pool.toml"])

    assert captured == {"context": CONTEXT, "config": "new-pool.toml"}


@pytest.mark.parametrize("amount", ["-1", "1.0000000001", "lots"])
def test_invalid_sol_amount_exits_with_usage_error(
    amount: str, built_args: list[argparse.Namespace]
) -> None:
    del built_args

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(
            ["increase-validator-stake", "pool.toml", str(Pubkey.new_unique()), amount]
        )

    assert excinfo.value.code == 2


def test_negative_fee_limit_exits_with_usage_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["--fee-limit-cb", "-5", "sync-pool", "pool.toml"])

    assert excinfo.value.code == 2


def test_validation_error_exits_with_usage_error(
    monkeypatch: pytest.MonkeyPatch, built_args: list[argparse.Namespace]
) -> None:
    del built_args

    def fake_sync(context: object, config: str) -> SyncResult:
        raise ValidationError("Can only have at most one validator with target=remainder")

    monkeypatch.setattr(cli_module, "sync_delegation", fake_sync)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["sync-delegation", "pool.toml"])

    assert excinfo.value.code == 2


def test_unexpected_failure_exits_with_error(
    monkeypatch: pytest.MonkeyPatch, built_args: list[argparse.Namespace]
) -> None:
    del built_args

    def fake_sync(context: object, config: str) -> SyncResult:
        raise RuntimeError("node unreachable")

    monkeypatch.setattr(cli_module, "sync_validator_list", fake_sync)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["sync-validator-list", "pool.toml"])

    assert excinfo.value.code == 1
