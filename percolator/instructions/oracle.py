"""Oracle program builders (custom PriceOracle, 128 bytes)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from .. import schemas
from ..codec import encode
from ..config import ProtocolConfig
from ..constants import PRICE_ORACLE_SIZE
from ..keys import PubkeyLike
from .common import AccountSlots, Instruction, make_instruction, slot
from .system import create_account


@dataclass(frozen=True)
class PriceUpdate:
    oracle: PubkeyLike
    price: int
    confidence: int = 0


@dataclass(frozen=True)
class InitializeOracleAccounts(AccountSlots):
    oracle: PubkeyLike = slot(writable=True)
    authority: PubkeyLike = slot(signer=True)
    instrument: PubkeyLike = slot()


@dataclass(frozen=True)
class UpdatePriceAccounts(AccountSlots):
    oracle: PubkeyLike = slot(writable=True)
    authority: PubkeyLike = slot(signer=True)


def initialize_oracle(
    config: ProtocolConfig,
    authority: PubkeyLike,
    oracle: PubkeyLike,
    instrument: PubkeyLike,
    initial_price: int,
    bump: int,
    rent_lamports: int,
) -> List[Instruction]:
    """
    [create_account, Initialize]. `oracle` is a fresh keypair address and
    must co-sign the transaction; `initial_price` is 1e6 fixed point.
    """
    program = config.require_oracle_program()
    create_ix = create_account(
        funder=authority,
        new_account=oracle,
        lamports=rent_lamports,
        space=PRICE_ORACLE_SIZE,
        owner=program,
    )
    data = encode(schemas.INITIALIZE_ORACLE, {"initial_price": initial_price, "bump": bump})
    init_ix = make_instruction(program, InitializeOracleAccounts(oracle, authority, instrument), data)
    return [create_ix, init_ix]


def update_price(
    config: ProtocolConfig,
    authority: PubkeyLike,
    oracle: PubkeyLike,
    price: int,
    confidence: int = 0,
) -> Instruction:
    program = config.require_oracle_program()
    data = encode(schemas.UPDATE_PRICE, {"price": price, "confidence": confidence})
    return make_instruction(program, UpdatePriceAccounts(oracle, authority), data)


def batch_update_price(
    config: ProtocolConfig,
    authority: PubkeyLike,
    updates: Sequence[PriceUpdate],
) -> List[Instruction]:
    """One UpdatePrice per entry, in input order; callers pack them into transactions."""
    return [
        update_price(config, authority, item.oracle, item.price, item.confidence)
        for item in updates
    ]


__all__ = [
    "PriceUpdate",
    "InitializeOracleAccounts",
    "UpdatePriceAccounts",
    "initialize_oracle",
    "update_price",
    "batch_update_price",
]
