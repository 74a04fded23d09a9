"""Use cases run end to end against an in-memory ledger."""

from __future__ import annotations

import base64
import io
import tomllib
from typing import TYPE_CHECKING

import pytest
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from stakesync.adapters.stake_pool import RENT_SYSVAR_ID
from stakesync.app import (
    RunContext,
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
from stakesync.config import ConfigurationError
from stakesync.domain.errors import (
    AuthorizationMismatchError,
    UnexpectedAccountStateError,
    ValidationError,
)
from stakesync.domain.model import Fee, FeeKind, FeeType, Mint, find_withdraw_authority
from stakesync.domain.ports import AccountData
from stakesync.domain.reconciliation import (
    Decrease,
    FeeChange,
    Increase,
    RemovalPlan,
    StakerChange,
)
from stakesync.domain.transactions import SendMode

from tests.helpers.ledger import (
    LAMPORTS_PER_SOL,
    MINIMUM_LAMPORTS,
    PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    FakeLedger,
    PoolWorld,
    encode_rent,
    make_entry,
    make_pool,
    make_validator_list,
    mint_account,
    stake_record,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from solders.keypair import Keypair

    from stakesync.domain.model import ValidatorStakeEntry

pytestmark = pytest.mark.integration

EPOCH = 600
SOL = LAMPORTS_PER_SOL


def _world(
    payer: Keypair,
    entries: list[ValidatorStakeEntry],
    *,
    staker: Pubkey | None = None,
    last_update_epoch: int = EPOCH,
) -> PoolWorld:
    address = Pubkey.new_unique()
    world = PoolWorld(
        address=address,
        pool=make_pool(
            address,
            manager=payer.pubkey(),
            staker=staker or payer.pubkey(),
            last_update_epoch=last_update_epoch,
        ),
        validator_list=make_validator_list(entries),
        reserve_lamports=10 * SOL,
        epoch=EPOCH,
    )
    for entry in entries:
        world.set_validator_stake(
            entry, stake_record(entry.active_stake_lamports, voter=entry.vote_account)
        )
    return world


def _context(
    world: PoolWorld,
    payer: Keypair,
    mode: SendMode = SendMode.SEND_ACTUAL,
    out: io.StringIO | None = None,
) -> RunContext:
    return RunContext(ledger=world.ledger, payer=payer, send_mode=mode, out=out or io.StringIO())


def _delegation_config(world: PoolWorld, *validators: tuple[Pubkey, str]) -> str:
    body = f'[pool]\npool = "{world.address}"\nprogram = "spl"\n'
    for vote, target in validators:
        body += f'\n[[pool.validators]]\nvote = "{vote}"\ntarget = {target}\n'
    return body


def test_sync_delegation_decreases_then_hands_remainder_the_reserve(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    shrinking = make_entry(active=5 * SOL, last_update_epoch=EPOCH)
    growing = make_entry(active=MINIMUM_LAMPORTS, last_update_epoch=EPOCH)
    world = _world(payer, [shrinking, growing])
    config = write_config(
        _delegation_config(
            world,
            (growing.vote_account, '"remainder"'),
            (shrinking.vote_account, f"{{ lamports = {MINIMUM_LAMPORTS} }}"),
        )
    )

    result = sync_delegation(_context(world, payer), config)

    assert result.changes == (
        Decrease(
            vote=shrinking.vote_account,
            validator_seed_suffix=0,
            transient_seed_suffix=0,
            lamports=5 * SOL - MINIMUM_LAMPORTS,
        ),
        Increase(
            vote=growing.vote_account,
            validator_seed_suffix=0,
            transient_seed_suffix=0,
            lamports=10 * SOL - 2 * MINIMUM_LAMPORTS,
        ),
    )
    assert len(result.signatures) == 1
    assert len(world.ledger.sent) == 1


def test_sync_delegation_rejects_wrong_staker(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    entry = make_entry(active=5 * SOL)
    world = _world(payer, [entry], staker=Pubkey.new_unique())
    config = write_config(_delegation_config(world, (entry.vote_account, '"remainder"')))

    with pytest.raises(AuthorizationMismatchError, match="Wrong staker"):
        sync_delegation(_context(world, payer), config)

    assert world.ledger.sent == []


def test_sync_delegation_validates_scheme_before_reading_ledger(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    world = _world(payer, [])
    config = write_config(
        _delegation_config(
            world,
            (Pubkey.new_unique(), '"remainder"'),
            (Pubkey.new_unique(), '"remainder"'),
        )
    )

    with pytest.raises(ValidationError, match="remainder"):
        sync_delegation(_context(world, payer), config)

    assert world.ledger.requests == []


def test_sync_delegation_rejects_validator_outside_pool(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    world = _world(payer, [make_entry(active=5 * SOL)])
    config = write_config(_delegation_config(world, (Pubkey.new_unique(), '"remainder"')))

    with pytest.raises(UnexpectedAccountStateError, match="not part of pool"):
        sync_delegation(_context(world, payer), config)


def test_missing_pool_account_is_fatal(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    world = _world(payer, [])
    del world.ledger.accounts[world.address]
    config = write_config(_delegation_config(world))

    with pytest.raises(UnexpectedAccountStateError, match="does not exist"):
        sync_delegation(_context(world, payer), config)


def test_dump_mode_prints_unsigned_batches(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    entry = make_entry(active=MINIMUM_LAMPORTS)
    world = _world(payer, [entry])
    config = write_config(_delegation_config(world, (entry.vote_account, '"remainder"')))
    out = io.StringIO()

    result = sync_delegation(_context(world, payer, SendMode.DUMP_MSG, out), config)

    assert result.signatures == ()
    assert world.ledger.sent == []
    [line] = out.getvalue().splitlines()
    transaction = VersionedTransaction.from_bytes(base64.b64decode(line))
    assert transaction.message.account_keys[0] == payer.pubkey()


def test_increase_single_validator_by_amount(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    entry = make_entry(active=MINIMUM_LAMPORTS)
    world = _world(payer, [entry])
    config = write_config(_delegation_config(world))

    result = increase_validator_stake(_context(world, payer), config, entry.vote_account, SOL)

    assert result.changes == (
        Increase(
            vote=entry.vote_account,
            validator_seed_suffix=0,
            transient_seed_suffix=0,
            lamports=SOL,
        ),
    )


def test_decrease_single_validator_all_leaves_minimum(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    entry = make_entry(active=5 * SOL)
    world = _world(payer, [entry])
    config = write_config(_delegation_config(world))

    result = decrease_validator_stake(_context(world, payer), config, entry.vote_account, None)

    [change] = result.changes
    assert isinstance(change, Decrease)
    assert change.lamports == 5 * SOL - MINIMUM_LAMPORTS


def test_sync_pool_changes_fee_signed_by_manager(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    world = _world(payer, [])
    config = write_config(
        f'[pool]\npool = "{world.address}"\n'
        "epoch-fee = { numerator = 5, denominator = 100 }\n"
    )

    result = sync_pool(_context(world, payer), config)

    assert result.changes == (
        FeeChange(
            old=FeeType.of(FeeKind.EPOCH, world.pool.epoch_fee),
            new=FeeType.of(FeeKind.EPOCH, Fee(numerator=5, denominator=100)),
        ),
    )
    assert len(world.ledger.sent) == 1


def test_sync_pool_without_differences_sends_nothing(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    world = _world(payer, [])
    config = write_config(f'[pool]\npool = "{world.address}"\n')

    result = sync_pool(_context(world, payer), config)

    assert result.changes == ()
    assert world.ledger.sent == []


def test_sync_validator_list_removes_then_adds(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    kept = make_entry(active=MINIMUM_LAMPORTS, last_update_epoch=EPOCH)
    leaving = make_entry(active=5 * SOL, last_update_epoch=EPOCH)
    world = _world(payer, [kept, leaving])
    joining = Pubkey.new_unique()
    config = write_config(
        f'[pool]\npool = "{world.address}"\n'
        f'\n[[pool.validators]]\nvote = "{kept.vote_account}"\n'
        f'\n[[pool.validators]]\nvote = "{joining}"\n'
    )

    result = sync_validator_list(_context(world, payer), config)

    assert result.changes == (
        RemovalPlan(entry=leaving, decrease_lamports=5 * SOL - MINIMUM_LAMPORTS),
        joining,
    )
    assert len(result.signatures) == 2
    removal_batch, add_batch = world.ledger.sent
    # compute budget pair, decrease, remove
    assert len(removal_batch.message.instructions) == 4
    assert len(add_batch.message.instructions) == 3


def test_sync_validator_list_runs_update_crank_first(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    entry = make_entry(active=MINIMUM_LAMPORTS, last_update_epoch=EPOCH - 1)
    world = _world(payer, [entry], last_update_epoch=EPOCH - 1)
    config = write_config(
        f'[pool]\npool = "{world.address}"\n'
        f'\n[[pool.validators]]\nvote = "{entry.vote_account}"\n'
    )

    result = sync_validator_list(_context(world, payer), config)

    assert result.changes == ()
    # validator list slice, then pool balance with cleanup
    assert len(result.signatures) == 2


def test_sync_validator_list_rejects_bad_config_before_update_crank(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    entry = make_entry(active=MINIMUM_LAMPORTS, last_update_epoch=EPOCH - 1)
    world = _world(payer, [entry], last_update_epoch=EPOCH - 1)
    config = write_config(
        f'[pool]\npool = "{world.address}"\n'
        f'preferred-deposit-validator = "{Pubkey.new_unique()}"\n'
        f'\n[[pool.validators]]\nvote = "{entry.vote_account}"\n'
    )

    with pytest.raises(ValidationError, match="not in the declared validator list"):
        sync_validator_list(_context(world, payer), config)

    assert world.ledger.simulated == []
    assert world.ledger.sent == []


def test_update_pool_skips_current_pool(payer: Keypair) -> None:
    world = _world(payer, [make_entry(last_update_epoch=EPOCH)])

    result = update_pool(_context(world, payer), world.address)

    assert result.signatures == ()
    assert world.ledger.sent == []


def test_set_staker_hands_over_role(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    world = _world(payer, [])
    new_staker = Pubkey.new_unique()
    config = write_config(f'[pool]\npool = "{world.address}"\nstaker = "{new_staker}"\n')

    result = set_staker(_context(world, payer), config)

    assert result.changes == (StakerChange(old=payer.pubkey(), new=new_staker),)
    assert len(world.ledger.sent) == 1


def test_set_staker_to_current_staker_is_a_no_op(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    world = _world(payer, [])
    config = write_config(f'[pool]\npool = "{world.address}"\nstaker = "{payer.pubkey()}"\n')

    result = set_staker(_context(world, payer), config)

    assert result.changes == ()
    assert world.ledger.requests == []


def test_list_pool_writes_a_loadable_config(payer: Keypair) -> None:
    entries = [make_entry(active=3 * SOL, last_update_epoch=EPOCH) for _ in range(2)]
    world = _world(payer, entries)
    out = io.StringIO()

    result = list_pool(_context(world, payer, out=out), world.address, verbose=True)

    listed = tomllib.loads(out.getvalue())["pool"]
    assert result.signatures == ()
    assert listed["pool"] == str(world.address)
    assert listed["program"] == "spl"
    assert listed["manager"] == str(payer.pubkey())
    assert listed["reserve"] == str(world.pool.reserve_stake)
    assert listed["max-validators"] == 50
    assert [validator["vote"] for validator in listed["validators"]] == [
        str(entry.vote_account) for entry in entries
    ]
    assert world.ledger.sent == []


def test_list_pool_without_validators_skips_validator_list(payer: Keypair) -> None:
    world = _world(payer, [make_entry(last_update_epoch=EPOCH)])
    out = io.StringIO()

    list_pool(_context(world, payer, out=out), world.address)

    listed = tomllib.loads(out.getvalue())["pool"]
    assert "validators" not in listed
    assert "max-validators" not in listed
    assert len(world.ledger.requests) == 1


def _mint_ledger(mint: Pubkey, **overrides: object) -> FakeLedger:
    values: dict[str, object] = {
        "mint_authority": None,
        "supply": 0,
        "decimals": 9,
        "is_initialized": True,
    }
    values.update(overrides)
    ledger = FakeLedger()
    ledger.accounts[mint] = mint_account(Mint(**values))  # type: ignore[arg-type]
    ledger.accounts[RENT_SYSVAR_ID] = AccountData(
        lamports=1, owner=Pubkey.default(), data=encode_rent()
    )
    return ledger


def _create_config(mint: Pubkey, *validators: Pubkey) -> str:
    body = (
        f'[pool]\nmint = "{mint}"\nmanager-fee-account = "{Pubkey.new_unique()}"\n'
        "max-validators = 10\nepoch-fee = { numerator = 5, denominator = 100 }\n"
    )
    for vote in validators:
        body += f'\n[[pool.validators]]\nvote = "{vote}"\n'
    return body


def test_create_pool_sends_reserve_then_initialize(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    mint = Pubkey.new_unique()
    ledger = _mint_ledger(mint, mint_authority=payer.pubkey())
    context = RunContext(ledger=ledger, payer=payer, out=io.StringIO())

    result = create_pool(context, write_config(_create_config(mint, Pubkey.new_unique())))

    [pool] = result.changes
    assert len(result.signatures) == 2
    reserve_tx, initialize_tx = ledger.sent
    assert len(reserve_tx.signatures) == 2
    # the payer doubles as manager
    assert len(initialize_tx.signatures) == 3
    initialize_keys = initialize_tx.message.account_keys
    assert pool in initialize_keys
    assert mint in initialize_keys
    assert TOKEN_PROGRAM_ID in initialize_keys
    assert PROGRAM_ID in initialize_keys
    assert find_withdraw_authority(PROGRAM_ID, pool) in initialize_keys


def test_create_pool_requires_manager_to_hold_mint_authority(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    mint = Pubkey.new_unique()
    ledger = _mint_ledger(mint, mint_authority=Pubkey.new_unique())
    context = RunContext(ledger=ledger, payer=payer, out=io.StringIO())

    with pytest.raises(AuthorizationMismatchError):
        create_pool(context, write_config(_create_config(mint)))

    assert ledger.sent == []


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"supply": 1}, "already has a supply"),
        ({"freeze_authority": Pubkey.new_unique()}, "has a freeze authority"),
        ({"is_initialized": False}, "is not initialized"),
    ],
)
def test_create_pool_rejects_unusable_mint(
    payer: Keypair,
    write_config: Callable[[str], Path],
    overrides: dict[str, object],
    message: str,
) -> None:
    mint = Pubkey.new_unique()
    ledger = _mint_ledger(mint, mint_authority=payer.pubkey(), **overrides)
    context = RunContext(ledger=ledger, payer=payer, out=io.StringIO())

    with pytest.raises(UnexpectedAccountStateError, match=message):
        create_pool(context, write_config(_create_config(mint)))

    assert ledger.sent == []


def test_create_pool_needs_a_keypair_for_declared_pool_address(
    payer: Keypair, write_config: Callable[[str], Path]
) -> None:
    mint = Pubkey.new_unique()
    ledger = _mint_ledger(mint, mint_authority=payer.pubkey())
    context = RunContext(ledger=ledger, payer=payer, out=io.StringIO())
    body = _create_config(mint).replace("[pool]\n", f'[pool]\npool = "{Pubkey.new_unique()}"\n')

    with pytest.raises(ConfigurationError, match="pool needs a keypair file"):
        create_pool(context, write_config(body))
