"""System program builders used before router / oracle initialisation."""

from __future__ import annotations

from dataclasses import dataclass

from .. import schemas
from ..codec import encode
from ..constants import SYSTEM_PROGRAM_ID
from ..keys import PubkeyLike, pubkey_str
from .common import AccountMeta, AccountSlots, Instruction, make_instruction, slot


@dataclass(frozen=True)
class CreateAccountAccounts(AccountSlots):
    funder: PubkeyLike = slot(signer=True, writable=True)
    new_account: PubkeyLike = slot(signer=True, writable=True)


@dataclass(frozen=True)
class CreateAccountWithSeedAccounts(AccountSlots):
    funder: PubkeyLike = slot(signer=True, writable=True)
    new_account: PubkeyLike = slot(writable=True)


def create_account(
    funder: PubkeyLike,
    new_account: PubkeyLike,
    lamports: int,
    space: int,
    owner: PubkeyLike,
) -> Instruction:
    data = encode(
        schemas.CREATE_ACCOUNT,
        {"lamports": lamports, "space": space, "owner": owner},
    )
    return make_instruction(
        SYSTEM_PROGRAM_ID, CreateAccountAccounts(funder, new_account), data
    )


def create_account_with_seed(
    funder: PubkeyLike,
    new_account: PubkeyLike,
    base: PubkeyLike,
    seed: str,
    lamports: int,
    space: int,
    owner: PubkeyLike,
) -> Instruction:
    seed_raw = seed.encode("utf-8")
    data = encode(
        schemas.create_account_with_seed(len(seed_raw)),
        {
            "base": base,
            "seed_length": len(seed_raw),
            "seed": seed_raw,
            "lamports": lamports,
            "space": space,
            "owner": owner,
        },
    )
    ix = make_instruction(
        SYSTEM_PROGRAM_ID, CreateAccountWithSeedAccounts(funder, new_account), data
    )
    if pubkey_str(base) != pubkey_str(funder):
        # base must sign when it is not the funder
        accounts = ix.accounts + (AccountMeta(pubkey_str(base), True, False),)
        ix = Instruction(ix.program_id, accounts, ix.data)
    return ix


__all__ = [
    "CreateAccountAccounts",
    "CreateAccountWithSeedAccounts",
    "create_account",
    "create_account_with_seed",
]
