from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

import pytest
from solders.pubkey import Pubkey

from stakesync.adapters.config_file import (
    declared_program,
    delegation_scheme,
    load_pool_config,
    membership_targets,
    new_pool_settings,
    pool_address,
    pool_config_payload,
    pool_targets,
    render_pool_config,
)
from stakesync.config import ConfigurationError
from stakesync.domain.errors import ValidationError
from stakesync.domain.model import Fee, FundingType, FutureEpochFee, StakePoolProgram, StakeStatus
from stakesync.domain.reconciliation import (
    REMAINDER,
    FundingAuthorityChange,
    LamportsTarget,
    ParameterReconciler,
)

from tests.helpers.ledger import PROGRAM_ID, make_entry, make_pool, make_validator_list

if TYPE_CHECKING:
    from pathlib import Path

POOL = Pubkey.new_unique()
FIRST = Pubkey.new_unique()
SECOND = Pubkey.new_unique()


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "pool.toml"
    path.write_text(body)
    return path


def _config_body() -> str:
    return f"""
[pool]
program = "spl"
pool = "{POOL}"
preferred-deposit-validator = "{SECOND}"
epoch-fee = {{ numerator = 3, denominator = 100 }}
sol-deposit-referral-fee = 50

[[pool.validators]]
vote = "{FIRST}"
target = {{ lamports = 5000000000 }}
active-stake-lamports = 12

[[pool.validators]]
vote = "{SECOND}"
target = "remainder"
"""


def test_config_file_yields_scheme_in_file_order(tmp_path: Path) -> None:
    config = load_pool_config(_write(tmp_path, _config_body()))

    assert pool_address(config) == POOL
    assert declared_program(config) == StakePoolProgram(PROGRAM_ID)
    scheme = delegation_scheme(config)
    assert [(item.vote, item.target) for item in scheme] == [
        (FIRST, LamportsTarget(5_000_000_000)),
        (SECOND, REMAINDER),
    ]


def test_membership_targets_include_preferred_validators(tmp_path: Path) -> None:
    targets = membership_targets(load_pool_config(_write(tmp_path, _config_body())))

    assert targets.validators == (FIRST, SECOND)
    assert targets.preferred_deposit_validator == SECOND
    assert targets.preferred_withdraw_validator is None


def test_omitted_pool_parameters_keep_current_values(tmp_path: Path) -> None:
    config = load_pool_config(_write(tmp_path, _config_body()))
    current = make_pool(POOL)

    targets = pool_targets(config, current, new_manager=current.manager)

    assert targets.epoch_fee == Fee(numerator=3, denominator=100)
    assert targets.sol_referral_fee == 50
    assert targets.staker == current.staker
    assert targets.stake_withdrawal_fee == current.stake_withdrawal_fee


def _parameter_reconciler() -> ParameterReconciler:
    return ParameterReconciler(pool=POOL, program=StakePoolProgram(PROGRAM_ID))


def test_omitted_funding_authorities_are_reset(tmp_path: Path) -> None:
    config = load_pool_config(_write(tmp_path, _config_body()))
    custom_stake_deposit = Pubkey.new_unique()
    custom_sol_deposit = Pubkey.new_unique()
    current = make_pool(
        POOL,
        stake_deposit_authority=custom_stake_deposit,
        sol_deposit_authority=custom_sol_deposit,
    )

    targets = pool_targets(config, current, new_manager=current.manager)
    changes = _parameter_reconciler().reconcile(current, targets)

    assert targets.stake_deposit_authority is None
    assert targets.sol_deposit_authority is None
    assert targets.sol_withdraw_authority is None
    assert [change for change in changes if isinstance(change, FundingAuthorityChange)] == [
        FundingAuthorityChange(
            funding_type=FundingType.STAKE_DEPOSIT, old=custom_stake_deposit, new=None
        ),
        FundingAuthorityChange(
            funding_type=FundingType.SOL_DEPOSIT, old=custom_sol_deposit, new=None
        ),
    ]


def test_declared_funding_authority_is_kept(tmp_path: Path) -> None:
    authority = Pubkey.new_unique()
    body = _config_body().replace(
        'program = "spl"', f'program = "spl"\nsol-withdraw-auth = "{authority}"'
    )
    config = load_pool_config(_write(tmp_path, body))
    current = make_pool(POOL, sol_withdraw_authority=authority)

    targets = pool_targets(config, current, new_manager=current.manager)
    changes = _parameter_reconciler().reconcile(current, targets)

    assert targets.sol_withdraw_authority == authority
    assert not any(isinstance(change, FundingAuthorityChange) for change in changes)


def test_two_remainders_are_rejected(tmp_path: Path) -> None:
    body = f"""
[pool]
pool = "{POOL}"

[[pool.validators]]
vote = "{FIRST}"
target = "remainder"

[[pool.validators]]
vote = "{SECOND}"
target = "remainder"
"""
    config = load_pool_config(_write(tmp_path, body))

    with pytest.raises(ValidationError):
        delegation_scheme(config)


def test_validator_without_target_is_rejected(tmp_path: Path) -> None:
    body = f"""
[pool]
pool = "{POOL}"

[[pool.validators]]
vote = "{FIRST}"
"""
    config = load_pool_config(_write(tmp_path, body))

    with pytest.raises(ValidationError, match="no delegation target"):
        delegation_scheme(config)


def test_duplicate_membership_is_rejected(tmp_path: Path) -> None:
    body = f"""
[pool]
pool = "{POOL}"

[[pool.validators]]
vote = "{FIRST}"

[[pool.validators]]
vote = "{FIRST}"
"""
    config = load_pool_config(_write(tmp_path, body))

    with pytest.raises(ValidationError, match="duplicate"):
        membership_targets(config)


@pytest.mark.parametrize(
    "body",
    [
        "[pool\n",
        '[pool]\nepoch-fee = { numerator = -1, denominator = 100 }\n',
        '[pool]\n[[pool.validators]]\nvote = "x"\ntarget = "everything"\n',
    ],
)
def test_malformed_config_raises_validation_error(tmp_path: Path, body: str) -> None:
    with pytest.raises(ValidationError):
        load_pool_config(_write(tmp_path, body))


def test_invalid_pubkey_is_a_validation_error(tmp_path: Path) -> None:
    config = load_pool_config(_write(tmp_path, '[pool]\npool = "not-a-key"\n'))

    with pytest.raises(ValidationError, match="Invalid pool"):
        pool_address(config)


def test_missing_config_file_is_a_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Cannot read pool config"):
        load_pool_config(tmp_path / "missing.toml")


def test_listed_pool_reconciles_to_no_changes(tmp_path: Path) -> None:
    pool = replace(
        make_pool(POOL),
        sol_deposit_authority=Pubkey.new_unique(),
        preferred_withdraw_validator=FIRST,
        next_epoch_fee=FutureEpochFee(epochs_ahead=1, fee=Fee(2, 100)),
        sol_referral_fee=10,
    )
    program = StakePoolProgram(PROGRAM_ID)

    rendered = render_pool_config(pool_config_payload(program, POOL, pool))
    config = load_pool_config(_write(tmp_path, rendered))

    assert "stake-deposit-auth" not in rendered
    assert "validators" not in rendered
    assert config.next_epoch_fee is not None
    assert config.next_epoch_fee.epochs_ahead == 1
    assert pool_address(config) == POOL
    assert declared_program(config) == program
    targets = pool_targets(config, make_pool(), new_manager=pool.manager)
    assert _parameter_reconciler().reconcile(pool, targets) == []


def test_listed_validators_carry_ledger_state(tmp_path: Path) -> None:
    entries = [
        make_entry(FIRST, active=7, transient_seed=3),
        make_entry(SECOND, validator_seed=2, status=StakeStatus.DEACTIVATING_TRANSIENT),
    ]
    payload = pool_config_payload(
        StakePoolProgram(PROGRAM_ID),
        POOL,
        make_pool(POOL),
        make_validator_list(entries, max_validators=10),
    )

    config = load_pool_config(_write(tmp_path, render_pool_config(payload)))

    assert config.max_validators == 10
    assert membership_targets(config).validators == (FIRST, SECOND)
    first, second = config.validators or []
    assert first.active_stake_lamports == 7
    assert first.validator_seed_suffix is None
    assert first.transient_seed_suffix == 3
    assert second.validator_seed_suffix == 2
    assert second.status == "DeactivatingTransient"
    assert second.target is None


def test_new_pool_settings_default_to_zero_fees(tmp_path: Path) -> None:
    mint = Pubkey.new_unique()
    fee_account = Pubkey.new_unique()
    body = f"""
[pool]
mint = "{mint}"
manager-fee-account = "{fee_account}"
max-validators = 5
stake-deposit-fee = {{ numerator = 1, denominator = 200 }}

[[pool.validators]]
vote = "{FIRST}"
"""

    settings = new_pool_settings(load_pool_config(_write(tmp_path, body)))

    assert settings.program == StakePoolProgram(PROGRAM_ID)
    assert settings.mint == mint
    assert settings.manager_fee_account == fee_account
    assert settings.staker is None
    assert settings.epoch_fee == Fee.zero()
    assert settings.deposit_fee == Fee(1, 200)
    assert settings.referral_fee == 0
    assert settings.starting_validators == 1


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ('[pool]\nmax-validators = 5\nmanager-fee-account = "{key}"\n', "requires mint"),
        ('[pool]\nmint = "{key}"\nmanager-fee-account = "{key}"\n', "max-validators"),
        (
            '[pool]\nmint = "{key}"\nmanager-fee-account = "{key}"\nmax-validators = 1\n'
            '[[pool.validators]]\nvote = "{key}"\n[[pool.validators]]\nvote = "{other}"\n',
            "declares 2 validators",
        ),
    ],
)
def test_new_pool_settings_reject_incomplete_config(
    tmp_path: Path, body: str, message: str
) -> None:
    config = load_pool_config(
        _write(tmp_path, body.format(key=Pubkey.new_unique(), other=Pubkey.new_unique()))
    )

    with pytest.raises(ValidationError, match=message):
        new_pool_settings(config)
