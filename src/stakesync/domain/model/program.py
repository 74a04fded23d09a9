"""Known deployments of the stake pool program."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Final

from solders.pubkey import Pubkey

SPL_STAKE_POOL_PROGRAM_ID: Final[Pubkey] = Pubkey.from_string(
    "SPoo1Ku8WFXoNDMHPsrGSTSG1Y47rzgn41SLUNakuHy"
)
SANCTUM_SPL_STAKE_POOL_PROGRAM_ID: Final[Pubkey] = Pubkey.from_string(
    "SP12tWFxD9oJsVWNavTTBZvMbA6gkAmxtVgxdqvyvhY"
)
SANCTUM_SPL_MULTI_STAKE_POOL_PROGRAM_ID: Final[Pubkey] = Pubkey.from_string(
    "SPMBzsVUuoHA4Jm6KunbsotaahvVikZs1JyTW6iJvbn"
)


@dataclass(frozen=True, slots=True)
class StakePoolProgram:
    """A stake pool program deployment, known by name or only by id.

    Resolved once per run and passed to every component that derives
    addresses or builds instructions.
    """

    program_id: Pubkey

    KNOWN: ClassVar[dict[str, Pubkey]] = {
        "spl": SPL_STAKE_POOL_PROGRAM_ID,
        "sanctum-spl": SANCTUM_SPL_STAKE_POOL_PROGRAM_ID,
        "sanctum-spl-multi": SANCTUM_SPL_MULTI_STAKE_POOL_PROGRAM_ID,
    }

    @classmethod
    def parse(cls, value: str) -> StakePoolProgram:
        known = cls.KNOWN.get(value.strip().lower())
        if known is not None:
            return cls(known)
        try:
            return cls(Pubkey.from_string(value.strip()))
        except ValueError as exc:
            names = ", ".join(sorted(cls.KNOWN))
            raise ValueError(
                f"Unknown stake pool program {value!r}; expected a base58 id or one of: {names}"
            ) from exc

    @property
    def name(self) -> str | None:
        for name, program_id in self.KNOWN.items():
            if program_id == self.program_id:
                return name
        return None

    def __str__(self) -> str:
        return self.name or str(self.program_id)
