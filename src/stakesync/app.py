"""Application orchestration entry points.

Each use case reads a fresh snapshot of the pool, reconciles it against the
declared config and submits the resulting batches in order. Nothing is kept
between runs, so rerunning after a partial failure recomputes what is left.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final, TextIO

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
from stakesync.adapters.keys import (
    load_keypair,
    new_account_keypair,
    parse_pubkey,
    resolve_authorizer,
    resolve_identity,
)
from stakesync.adapters.solana_rpc import SolanaRpcClient
from stakesync.adapters.stake_pool import (
    CLOCK_SYSVAR_ID,
    RENT_SYSVAR_ID,
    STAKE_PROGRAM_ID,
    OperationBuilder,
    PoolCreation,
    StakePoolInstructions,
    decode_clock,
    decode_mint,
    decode_rent,
    decode_stake_account,
    decode_stake_pool,
    decode_validator_list,
)
from stakesync.domain.errors import AuthorizationMismatchError, UnexpectedAccountStateError
from stakesync.domain.model import StakePoolProgram, UpdateCtrl, lamports_for_new_vsa
from stakesync.domain.reconciliation import (
    REMAINDER,
    DelegationInput,
    DelegationReconciler,
    InsufficientReserve,
    LamportsTarget,
    ParameterReconciler,
    PartialIncrease,
    StakerChange,
    TransientConflict,
    ValidatorBeingRemoved,
    ValidatorSetReconciler,
    match_scheme,
    next_epoch_stake,
    plan_update,
)
from stakesync.domain.transactions import (
    BatchSubmitter,
    FeeEstimator,
    Operation,
    OperationKind,
    SendMode,
    SignerSet,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from pathlib import Path

    from solders.pubkey import Pubkey
    from solders.signature import Signature

    from stakesync.config import ClusterConfig
    from stakesync.domain.model import (
        Clock,
        Lamports,
        Rent,
        StakePool,
        StakeRecord,
        ValidatorList,
        ValidatorStakeEntry,
    )
    from stakesync.domain.ports import LedgerClient
    from stakesync.domain.reconciliation import (
        DelegationChange,
        DelegationTarget,
        ParameterChange,
        PreferredValidatorChange,
        RemovalPlan,
    )
    from stakesync.domain.transactions import Authorizer

log = getLogger(__name__)

DEFAULT_FEE_LIMIT_CB: Final[int] = 1

type Change = DelegationChange | ParameterChange | RemovalPlan | PreferredValidatorChange

_WARNING_CHANGES = (PartialIncrease, InsufficientReserve, TransientConflict, ValidatorBeingRemoved)


@dataclass(slots=True, kw_only=True)
class RunContext:
    """Collaborators and run-level options shared by every use case."""

    ledger: LedgerClient
    payer: Authorizer
    send_mode: SendMode = SendMode.SEND_ACTUAL
    fee_limit_cb: int = DEFAULT_FEE_LIMIT_CB
    out: TextIO = field(default_factory=lambda: sys.stdout)

    @classmethod
    def from_cluster(
        cls,
        cluster: ClusterConfig,
        *,
        send_mode: SendMode = SendMode.SEND_ACTUAL,
        fee_limit_cb: int = DEFAULT_FEE_LIMIT_CB,
    ) -> RunContext:
        return cls(
            ledger=SolanaRpcClient(cluster=cluster),
            payer=load_keypair(cluster.keypair_path),
            send_mode=send_mode,
            fee_limit_cb=fee_limit_cb,
        )

    def authorizer(self, raw: str | None) -> Authorizer:
        return resolve_authorizer(raw, self.send_mode, self.payer)

    def submitter(self, *authorizers: Authorizer) -> BatchSubmitter:
        return BatchSubmitter(
            ledger=self.ledger,
            signers=SignerSet.of(self.payer, *authorizers),
            mode=self.send_mode,
            fee_estimator=FeeEstimator(self.ledger, self.fee_limit_cb),
            out=self.out,
        )


@dataclass(frozen=True, slots=True)
class SyncResult:
    changes: tuple[Change | Pubkey, ...] = ()
    signatures: tuple[Signature, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class PoolSnapshot:
    """Pool account and sysvars read in one request."""

    address: Pubkey
    program: StakePoolProgram
    pool: StakePool
    clock: Clock
    rent: Rent

    @property
    def epoch(self) -> int:
        return self.clock.epoch

    @property
    def minimum_lamports(self) -> Lamports:
        return lamports_for_new_vsa(self.rent)

    def instructions(self) -> StakePoolInstructions:
        return StakePoolInstructions(self.program, self.address, self.pool)

    def operation_builder(self) -> OperationBuilder:
        return OperationBuilder(self.instructions())


def fetch_pool_snapshot(
    ledger: LedgerClient,
    address: Pubkey,
    *,
    declared: StakePoolProgram | None = None,
) -> PoolSnapshot:
    """Read the pool with the clock and rent sysvars; the program is the pool's owner."""

    pool_account, clock_account, rent_account = ledger.get_multiple_accounts(
        [address, CLOCK_SYSVAR_ID, RENT_SYSVAR_ID]
    )
    if pool_account is None:
        raise UnexpectedAccountStateError(f"Stake pool {address} does not exist")
    if clock_account is None or rent_account is None:
        raise UnexpectedAccountStateError("Clock or rent sysvar not available")
    program = StakePoolProgram(pool_account.owner)
    if declared is not None and declared != program:
        raise UnexpectedAccountStateError(
            f"Stake pool {address} is owned by {program}, config declares {declared}"
        )
    log.debug("Stake pool %s is owned by program %s", address, program)
    return PoolSnapshot(
        address=address,
        program=program,
        pool=decode_stake_pool(pool_account.data),
        clock=decode_clock(clock_account.data),
        rent=decode_rent(rent_account.data),
    )


def fetch_validator_list(ledger: LedgerClient, pool: StakePool) -> tuple[ValidatorList, Lamports]:
    """Validator list and reserve balance of ``pool``."""

    list_account, reserve_account = ledger.get_multiple_accounts(
        [pool.validator_list, pool.reserve_stake]
    )
    if list_account is None:
        raise UnexpectedAccountStateError(f"Validator list {pool.validator_list} does not exist")
    if reserve_account is None:
        raise UnexpectedAccountStateError(f"Reserve stake {pool.reserve_stake} does not exist")
    return decode_validator_list(list_account.data), reserve_account.lamports


def fetch_stake_records(
    ledger: LedgerClient,
    snapshot: PoolSnapshot,
    entries: Sequence[ValidatorStakeEntry],
) -> list[tuple[StakeRecord | None, StakeRecord | None]]:
    """Validator and transient stake accounts of each entry, in entry order."""

    instructions = snapshot.instructions()
    addresses: list[Pubkey] = []
    for entry in entries:
        addresses.append(
            instructions.validator_stake_account(entry.vote_account, entry.validator_seed_suffix)
        )
        addresses.append(
            instructions.transient_stake_account(entry.vote_account, entry.transient_seed_suffix)
        )
    accounts = ledger.get_multiple_accounts(addresses)
    records: list[tuple[StakeRecord | None, StakeRecord | None]] = []
    for index in range(0, len(accounts), 2):
        validator_account, transient_account = accounts[index], accounts[index + 1]
        committed = None if validator_account is None else decode_stake_account(validator_account)
        transient = None
        # A transient address can hold lamports sent there by anyone.
        if transient_account is not None and transient_account.owner == STAKE_PROGRAM_ID:
            transient = decode_stake_account(transient_account)
        records.append((committed, transient))
    return records


def _check_authority(role: str, *, expected: Pubkey, actual: Pubkey) -> None:
    if expected != actual:
        raise AuthorizationMismatchError(role, expected=expected, actual=actual)


def _log_changes(changes: Iterable[Change]) -> None:
    for change in changes:
        level = logging.WARNING if isinstance(change, _WARNING_CHANGES) else logging.INFO
        log.log(level, "%s", change.describe())


def _delegation_reconciler(snapshot: PoolSnapshot, reserve: Lamports) -> DelegationReconciler:
    return DelegationReconciler(
        reserve_lamports=reserve,
        current_epoch=snapshot.epoch,
        minimum_lamports=snapshot.minimum_lamports,
    )


def sync_delegation(context: RunContext, config_path: str | Path) -> SyncResult:
    """Move every declared validator toward its target stake (staker only)."""

    config = load_pool_config(config_path)
    scheme = delegation_scheme(config)
    staker = context.authorizer(config.staker)
    snapshot = fetch_pool_snapshot(
        context.ledger, pool_address(config), declared=declared_program(config)
    )
    _check_authority("staker", expected=snapshot.pool.staker, actual=staker.pubkey())

    validator_list, reserve = fetch_validator_list(context.ledger, snapshot.pool)
    pairs = match_scheme(scheme, validator_list)
    records = fetch_stake_records(context.ledger, snapshot, [entry for _, entry in pairs])
    inputs = [
        DelegationInput(
            entry=entry,
            target=delegation.target,
            committed=committed,
            transient=transient,
        )
        for (delegation, entry), (committed, transient) in zip(pairs, records, strict=True)
    ]
    log.info(
        "Syncing delegation of %d validators, reserve=%d lamports, epoch=%d",
        len(inputs),
        reserve,
        snapshot.epoch,
    )
    changes = _delegation_reconciler(snapshot, reserve).reconcile(inputs)
    _log_changes(changes)

    operations = snapshot.operation_builder().delegation_operations(
        changes, staker=staker.pubkey()
    )
    signatures = context.submitter(staker).submit(operations)
    return SyncResult(changes=tuple(changes), signatures=tuple(signatures))


def _sync_single_validator(
    context: RunContext,
    config_path: str | Path,
    vote: Pubkey,
    target_for: Callable[[Lamports], DelegationTarget],
) -> SyncResult:
    config = load_pool_config(config_path)
    staker = context.authorizer(config.staker)
    snapshot = fetch_pool_snapshot(
        context.ledger, pool_address(config), declared=declared_program(config)
    )
    _check_authority("staker", expected=snapshot.pool.staker, actual=staker.pubkey())

    validator_list, reserve = fetch_validator_list(context.ledger, snapshot.pool)
    entry = validator_list.find(vote)
    if entry is None:
        raise UnexpectedAccountStateError(f"Validator {vote} not part of pool")
    [(committed, transient)] = fetch_stake_records(context.ledger, snapshot, [entry])
    if committed is None:
        raise UnexpectedAccountStateError(f"Validator stake account of {vote} does not exist")

    projected, _phase = next_epoch_stake(committed, transient, snapshot.epoch)
    item = DelegationInput(
        entry=entry,
        target=target_for(projected),
        committed=committed,
        transient=transient,
    )
    changes = _delegation_reconciler(snapshot, reserve).reconcile([item])
    _log_changes(changes)

    operations = snapshot.operation_builder().delegation_operations(
        changes, staker=staker.pubkey()
    )
    signatures = context.submitter(staker).submit(operations)
    return SyncResult(changes=tuple(changes), signatures=tuple(signatures))


def increase_validator_stake(
    context: RunContext,
    config_path: str | Path,
    vote: Pubkey,
    lamports: Lamports | None,
) -> SyncResult:
    """Increase one validator's stake; ``None`` moves everything available from the reserve."""

    def target_for(projected: Lamports) -> DelegationTarget:
        if lamports is None:
            return REMAINDER
        return LamportsTarget(projected + lamports)

    return _sync_single_validator(context, config_path, vote, target_for)


def decrease_validator_stake(
    context: RunContext,
    config_path: str | Path,
    vote: Pubkey,
    lamports: Lamports | None,
) -> SyncResult:
    """Decrease one validator's stake; ``None`` leaves only the minimum balance."""

    def target_for(projected: Lamports) -> DelegationTarget:
        if lamports is None:
            return LamportsTarget(0)
        return LamportsTarget(max(projected - lamports, 0))

    return _sync_single_validator(context, config_path, vote, target_for)


def sync_pool(context: RunContext, config_path: str | Path) -> SyncResult:
    """Bring fees, authorities, staker and manager in line with the config (manager only)."""

    config = load_pool_config(config_path)
    manager = context.authorizer(config.old_manager)
    snapshot = fetch_pool_snapshot(
        context.ledger, pool_address(config), declared=declared_program(config)
    )
    _check_authority("manager", expected=snapshot.pool.manager, actual=manager.pubkey())
    # A bare pubkey is enough for a new manager held by a multisig.
    new_manager = resolve_identity(config.manager, manager)

    targets = pool_targets(config, snapshot.pool, new_manager=new_manager.pubkey())
    reconciler = ParameterReconciler(pool=snapshot.address, program=snapshot.program)
    changes = reconciler.reconcile(snapshot.pool, targets)
    if not changes:
        log.info("No changes necessary")
        return SyncResult()
    _log_changes(changes)

    operations = snapshot.operation_builder().parameter_operations(
        changes,
        manager=manager.pubkey(),
        manager_fee_account=targets.manager_fee_account,
    )
    signatures = context.submitter(manager, new_manager).submit(operations)
    return SyncResult(changes=tuple(changes), signatures=tuple(signatures))


def _run_update(
    context: RunContext,
    snapshot: PoolSnapshot,
    validator_list: ValidatorList,
    ctrl: UpdateCtrl,
    *,
    no_merge: bool = False,
) -> list[Signature]:
    plan = plan_update(snapshot.pool, validator_list, snapshot.epoch, ctrl)
    if plan is None:
        log.info("Update not required")
        return []
    log.info("Updating pool %s for epoch %d", snapshot.address, snapshot.epoch)
    units = snapshot.operation_builder().update_units(plan, no_merge=no_merge)
    return context.submitter().submit(units)


def update_pool(
    context: RunContext,
    pool: Pubkey,
    *,
    ctrl: UpdateCtrl = UpdateCtrl.IF_NEEDED,
    no_merge: bool = False,
) -> SyncResult:
    """Run the epoch update crank; permissionless, signed by the payer only."""

    snapshot = fetch_pool_snapshot(context.ledger, pool)
    validator_list, _reserve = fetch_validator_list(context.ledger, snapshot.pool)
    signatures = _run_update(context, snapshot, validator_list, ctrl, no_merge=no_merge)
    return SyncResult(signatures=tuple(signatures))


def sync_validator_list(context: RunContext, config_path: str | Path) -> SyncResult:
    """Add, remove and set preferred validators to match the config (staker only)."""

    config = load_pool_config(config_path)
    targets = membership_targets(config)
    staker = context.authorizer(config.staker)
    address = pool_address(config)
    snapshot = fetch_pool_snapshot(context.ledger, address, declared=declared_program(config))
    _check_authority("staker", expected=snapshot.pool.staker, actual=staker.pubkey())
    validator_list, _reserve = fetch_validator_list(context.ledger, snapshot.pool)
    reconciler = ValidatorSetReconciler(minimum_lamports=snapshot.minimum_lamports)
    reconciler.validate(targets, validator_list)

    # Membership changes require a pool updated for the current epoch.
    signatures = _run_update(context, snapshot, validator_list, UpdateCtrl.IF_NEEDED)
    if signatures:
        snapshot = fetch_pool_snapshot(context.ledger, address)
        validator_list, _reserve = fetch_validator_list(context.ledger, snapshot.pool)

    _add, candidates = reconciler.membership_changes(targets.validators, validator_list)
    candidate_entries = [removal.entry for removal in candidates]
    stake_records = {
        entry.vote_account: committed
        for entry, (committed, _transient) in zip(
            candidate_entries,
            fetch_stake_records(context.ledger, snapshot, candidate_entries),
            strict=True,
        )
        if committed is not None
    }
    changeset = reconciler.reconcile(targets, snapshot.pool, validator_list, stake_records)

    builder = snapshot.operation_builder()
    submitter = context.submitter(staker)
    staker_pubkey = staker.pubkey()

    _log_changes(changeset.remove)
    signatures.extend(
        submitter.submit(builder.removal_units(changeset.remove, staker=staker_pubkey))
    )

    for vote in changeset.add:
        log.info("Adding validator %s", vote)
    signatures.extend(submitter.submit(builder.add_operations(changeset.add, staker=staker_pubkey)))

    _log_changes(changeset.preferred)
    signatures.extend(
        submitter.submit(builder.preferred_operations(changeset.preferred, staker=staker_pubkey))
    )

    if changeset.is_empty:
        log.info("Validator list already in sync")
    return SyncResult(
        changes=(*changeset.remove, *changeset.add, *changeset.preferred),
        signatures=tuple(signatures),
    )


def set_staker(context: RunContext, config_path: str | Path) -> SyncResult:
    """Hand the staker role to the config's staker, signed by the current staker."""

    config = load_pool_config(config_path)
    old_staker = context.authorizer(config.old_staker)
    new_staker = context.payer.pubkey() if config.staker is None else parse_pubkey(config.staker)
    if old_staker.pubkey() == new_staker:
        log.info("Current staker already %s, no changes necessary", new_staker)
        return SyncResult()

    snapshot = fetch_pool_snapshot(
        context.ledger, pool_address(config), declared=declared_program(config)
    )
    _check_authority("staker", expected=snapshot.pool.staker, actual=old_staker.pubkey())

    change = StakerChange(old=old_staker.pubkey(), new=new_staker)
    _log_changes([change])
    operation = Operation(
        kind=OperationKind.SET_STAKER,
        instruction=snapshot.instructions().set_staker(new_staker, signer=old_staker.pubkey()),
        description=change.describe(),
    )
    signatures = context.submitter(old_staker).submit([operation])
    return SyncResult(changes=(change,), signatures=tuple(signatures))


def list_pool(context: RunContext, address: Pubkey, *, verbose: bool = False) -> SyncResult:
    """Write the pool's current state to ``context.out`` as a pool config file.

    With ``verbose`` the validator list is included.
    """

    snapshot = fetch_pool_snapshot(context.ledger, address)
    validator_list = None
    if verbose:
        validator_list, _reserve = fetch_validator_list(context.ledger, snapshot.pool)
    payload = pool_config_payload(snapshot.program, address, snapshot.pool, validator_list)
    context.out.write(render_pool_config(payload))
    return SyncResult()


def create_pool(context: RunContext, config_path: str | Path) -> SyncResult:
    """Create and initialize a new pool from its config (manager signs).

    The manager must hold the mint authority of an empty mint without a
    freeze authority; it is handed to the pool's withdraw authority.
    """

    config = load_pool_config(config_path)
    settings = new_pool_settings(config)
    manager = context.authorizer(config.manager)
    pool_keypair = new_account_keypair(config.pool, "pool")
    list_keypair = new_account_keypair(config.validator_list, "validator-list")
    reserve_keypair = new_account_keypair(config.reserve, "reserve")

    mint_account, rent_account, *created = context.ledger.get_multiple_accounts(
        [
            settings.mint,
            RENT_SYSVAR_ID,
            pool_keypair.pubkey(),
            list_keypair.pubkey(),
            reserve_keypair.pubkey(),
        ]
    )
    if mint_account is None:
        raise UnexpectedAccountStateError(f"Mint {settings.mint} does not exist")
    if rent_account is None:
        raise UnexpectedAccountStateError("Rent sysvar not available")
    for keypair, account in zip(
        (pool_keypair, list_keypair, reserve_keypair), created, strict=True
    ):
        if account is not None:
            raise UnexpectedAccountStateError(f"Account {keypair.pubkey()} already exists")
    mint = decode_mint(mint_account.data)
    if not mint.is_initialized:
        raise UnexpectedAccountStateError(f"Mint {settings.mint} is not initialized")
    if mint.supply != 0:
        raise UnexpectedAccountStateError(f"Mint {settings.mint} already has a supply")
    if mint.freeze_authority is not None:
        raise UnexpectedAccountStateError(f"Mint {settings.mint} has a freeze authority")
    if mint.mint_authority is None:
        raise UnexpectedAccountStateError(f"Mint {settings.mint} has no mint authority")
    _check_authority("mint authority", expected=mint.mint_authority, actual=manager.pubkey())

    creation = PoolCreation(
        program=settings.program,
        payer=context.payer.pubkey(),
        pool=pool_keypair.pubkey(),
        validator_list=list_keypair.pubkey(),
        reserve=reserve_keypair.pubkey(),
        mint=settings.mint,
        token_program=mint_account.owner,
        manager=manager.pubkey(),
        manager_fee_account=settings.manager_fee_account,
        staker=settings.staker or manager.pubkey(),
        deposit_authority=settings.deposit_authority,
        epoch_fee=settings.epoch_fee,
        withdrawal_fee=settings.withdrawal_fee,
        deposit_fee=settings.deposit_fee,
        referral_fee=settings.referral_fee,
        max_validators=settings.max_validators,
        starting_validators=settings.starting_validators,
        rent=decode_rent(rent_account.data),
    )
    log.info(
        "Creating stake pool %s: program=%s, validator list=%s, reserve=%s",
        creation.pool,
        creation.program,
        creation.validator_list,
        creation.reserve,
    )
    submitter = context.submitter(manager, reserve_keypair, pool_keypair, list_keypair)
    signatures = submitter.submit(creation.units())
    return SyncResult(changes=(creation.pool,), signatures=tuple(signatures))
