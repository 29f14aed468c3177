"""
Instruction record and per-operation account slots.

Remote programs index accounts positionally. Each operation declares its
accounts as a frozen dataclass whose field order *is* the wire order and
whose `slot(...)` metadata carries the signer / writable roles, so the
position of every account is fixed in one place.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Tuple

from ..keys import PubkeyLike, pubkey_str


@dataclass(frozen=True)
class AccountMeta:
    pubkey: str
    is_signer: bool
    is_writable: bool


@dataclass(frozen=True)
class Instruction:
    program_id: str
    accounts: Tuple[AccountMeta, ...]
    data: bytes

    @property
    def discriminator(self) -> int:
        return self.data[0]


def slot(*, signer: bool = False, writable: bool = False, default: Any = dataclasses.MISSING) -> Any:
    return dataclasses.field(default=default, metadata={"signer": signer, "writable": writable})


class AccountSlots:
    """Mixin for the per-operation account dataclasses."""

    def metas(self) -> Tuple[AccountMeta, ...]:
        metas = []
        for item in dataclasses.fields(self):  # type: ignore[arg-type]
            metas.append(
                AccountMeta(
                    pubkey=pubkey_str(getattr(self, item.name)),
                    is_signer=bool(item.metadata.get("signer", False)),
                    is_writable=bool(item.metadata.get("writable", False)),
                )
            )
        return tuple(metas)


def make_instruction(program_id: PubkeyLike, accounts: AccountSlots, data: bytes) -> Instruction:
    return Instruction(program_id=pubkey_str(program_id), accounts=accounts.metas(), data=data)


__all__ = ["AccountMeta", "Instruction", "AccountSlots", "slot", "make_instruction"]
