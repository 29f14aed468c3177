"""
Router program instruction builders (programs/router, cli/src/margin.rs,
cli/src/trading.rs).

Builders are pure: no RPC, caller params are never mutated, and the same
inputs always give byte-identical instructions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple, Union

from .. import schemas
from ..codec import DecodeError, Invalid, decode, encode
from ..config import ProtocolConfig
from ..constants import (
    NATIVE_MINT,
    PORTFOLIO_ACCOUNT_SEED,
    PORTFOLIO_ACCOUNT_SIZE,
    SYSTEM_PROGRAM_ID,
    MakerClass,
    RouterInstruction,
    Side,
    TimeInForce,
)
from ..keys import PubkeyLike
from ..layout import Layout
from ..pda import (
    derive_authority,
    derive_lp_seat,
    derive_receipt,
    derive_registry,
    derive_vault,
    portfolio_address,
)
from .common import AccountSlots, Instruction, make_instruction, slot
from .system import create_account_with_seed


@dataclass(frozen=True)
class OrderSplit:
    side: Side
    qty: int
    limit_px: int

    def as_fields(self) -> Dict[str, int]:
        return {"side": int(self.side), "qty": self.qty, "limit_px": self.limit_px}


@dataclass(frozen=True)
class PlaceOrderParams:
    """Order intent for `place_order`.

    Only `side`, `size` and `price` reach the wire (as a single split).
    `instrument_idx`, `time_in_force` and `maker_class` are carried for the
    caller's bookkeeping and are not encoded.
    """

    instrument_idx: int
    side: Side
    size: int
    price: int
    time_in_force: TimeInForce = TimeInForce.GTC
    maker_class: MakerClass = MakerClass.REG


@dataclass(frozen=True)
class RiskParams:
    imr_bps: int
    mmr_bps: int
    liquidation_band_bps: int
    max_oracle_staleness_secs: int

    def as_fields(self) -> Dict[str, int]:
        return {
            "imr_bps": self.imr_bps,
            "mmr_bps": self.mmr_bps,
            "liquidation_band_bps": self.liquidation_band_bps,
            "max_oracle_staleness_secs": self.max_oracle_staleness_secs,
        }


# ---- account slots (order == wire order) ----


@dataclass(frozen=True)
class InitializePortfolioAccounts(AccountSlots):
    portfolio: PubkeyLike = slot(writable=True)
    user: PubkeyLike = slot(signer=True, writable=True)


@dataclass(frozen=True)
class CollateralAccounts(AccountSlots):
    portfolio: PubkeyLike = slot(writable=True)
    user: PubkeyLike = slot(signer=True, writable=True)
    system_program: PubkeyLike = slot(default=SYSTEM_PROGRAM_ID)


@dataclass(frozen=True)
class ExecuteCrossSlabAccounts(AccountSlots):
    portfolio: PubkeyLike = slot(writable=True)
    user: PubkeyLike = slot(signer=True)
    vault: PubkeyLike = slot(writable=True)
    registry: PubkeyLike = slot(writable=True)
    router_authority: PubkeyLike = slot()
    system_program: PubkeyLike = slot()
    oracle: PubkeyLike = slot()
    slab: PubkeyLike = slot(writable=True)
    receipt: PubkeyLike = slot(writable=True)


@dataclass(frozen=True)
class ReserveAccounts(AccountSlots):
    portfolio: PubkeyLike = slot(writable=True)
    user: PubkeyLike = slot(signer=True)
    matcher_state: PubkeyLike = slot()
    lp_seat: PubkeyLike = slot(writable=True)
    system_program: PubkeyLike = slot(default=SYSTEM_PROGRAM_ID)


@dataclass(frozen=True)
class ReleaseAccounts(AccountSlots):
    portfolio: PubkeyLike = slot(writable=True)
    user: PubkeyLike = slot(signer=True)
    matcher_state: PubkeyLike = slot()
    lp_seat: PubkeyLike = slot(writable=True)


@dataclass(frozen=True)
class LiquidateAccounts(AccountSlots):
    liquidator_portfolio: PubkeyLike = slot(writable=True)
    liquidator: PubkeyLike = slot(signer=True)
    target_portfolio: PubkeyLike = slot(writable=True)
    system_program: PubkeyLike = slot(default=SYSTEM_PROGRAM_ID)


@dataclass(frozen=True)
class UpdateRiskParamsAccounts(AccountSlots):
    registry: PubkeyLike = slot(writable=True)
    governance: PubkeyLike = slot(signer=True)


# ---- builders ----


def initialize_portfolio(
    config: ProtocolConfig,
    user: PubkeyLike,
    rent_lamports: int,
    portfolio_size: int = PORTFOLIO_ACCOUNT_SIZE,
) -> List[Instruction]:
    """[create_account_with_seed, InitializePortfolio]."""
    program = config.router_program_id
    portfolio = portfolio_address(user, program)
    create_ix = create_account_with_seed(
        funder=user,
        new_account=portfolio,
        base=user,
        seed=PORTFOLIO_ACCOUNT_SEED,
        lamports=rent_lamports,
        space=portfolio_size,
        owner=program,
    )
    data = encode(schemas.INITIALIZE_PORTFOLIO, {"user": user})
    init_ix = make_instruction(program, InitializePortfolioAccounts(portfolio, user), data)
    return [create_ix, init_ix]


def deposit(config: ProtocolConfig, user: PubkeyLike, amount: int) -> Instruction:
    program = config.router_program_id
    data = encode(schemas.DEPOSIT, {"amount": amount})
    accounts = CollateralAccounts(portfolio_address(user, program), user)
    return make_instruction(program, accounts, data)


def withdraw(config: ProtocolConfig, user: PubkeyLike, amount: int) -> Instruction:
    program = config.router_program_id
    data = encode(schemas.WITHDRAW, {"amount": amount})
    accounts = CollateralAccounts(portfolio_address(user, program), user)
    return make_instruction(program, accounts, data)


def execute_cross_slab(
    config: ProtocolConfig,
    user: PubkeyLike,
    slab: PubkeyLike,
    oracle: PubkeyLike,
    splits: Sequence[OrderSplit],
    mint: PubkeyLike = NATIVE_MINT,
) -> Instruction:
    program = config.router_program_id
    layout = schemas.execute_cross_slab(len(splits))
    data = encode(
        layout,
        {"num_splits": len(splits), "splits": [split.as_fields() for split in splits]},
    )
    portfolio = portfolio_address(user, program)
    accounts = ExecuteCrossSlabAccounts(
        portfolio=portfolio,
        user=user,
        vault=derive_vault(mint, program).address,
        registry=derive_registry(program).address,
        router_authority=derive_authority(program).address,
        system_program=SYSTEM_PROGRAM_ID,
        oracle=oracle,
        slab=slab,
        receipt=derive_receipt(portfolio, slab, program).address,
    )
    return make_instruction(program, accounts, data)


def place_order(
    config: ProtocolConfig,
    user: PubkeyLike,
    slab: PubkeyLike,
    oracle: PubkeyLike,
    params: PlaceOrderParams,
) -> Instruction:
    """Single-split ExecuteCrossSlab (the router routes it to one slab)."""
    split = OrderSplit(side=params.side, qty=params.size, limit_px=params.price)
    return execute_cross_slab(config, user, slab, oracle, [split])


def lp_seat_for(config: ProtocolConfig, user: PubkeyLike, matcher_state: PubkeyLike, context_id: int) -> str:
    program = config.router_program_id
    portfolio = portfolio_address(user, program)
    return derive_lp_seat(program, matcher_state, portfolio, context_id, program).address


def router_reserve(
    config: ProtocolConfig,
    user: PubkeyLike,
    matcher_state: PubkeyLike,
    amount: int,
    context_id: int,
) -> Instruction:
    program = config.router_program_id
    data = encode(schemas.ROUTER_RESERVE, {"amount": amount, "context_id": context_id})
    accounts = ReserveAccounts(
        portfolio=portfolio_address(user, program),
        user=user,
        matcher_state=matcher_state,
        lp_seat=lp_seat_for(config, user, matcher_state, context_id),
    )
    return make_instruction(program, accounts, data)


def router_release(
    config: ProtocolConfig,
    user: PubkeyLike,
    matcher_state: PubkeyLike,
    context_id: int,
) -> Instruction:
    program = config.router_program_id
    data = encode(schemas.ROUTER_RELEASE, {"context_id": context_id})
    accounts = ReleaseAccounts(
        portfolio=portfolio_address(user, program),
        user=user,
        matcher_state=matcher_state,
        lp_seat=lp_seat_for(config, user, matcher_state, context_id),
    )
    return make_instruction(program, accounts, data)


def liquidate_user(
    config: ProtocolConfig,
    liquidator: PubkeyLike,
    target_user: PubkeyLike,
) -> Instruction:
    program = config.router_program_id
    data = encode(schemas.LIQUIDATE_USER, {"target_user": target_user})
    accounts = LiquidateAccounts(
        liquidator_portfolio=portfolio_address(liquidator, program),
        liquidator=liquidator,
        target_portfolio=portfolio_address(target_user, program),
    )
    return make_instruction(program, accounts, data)


def update_risk_params(
    config: ProtocolConfig,
    governance: PubkeyLike,
    params: RiskParams,
    registry: Union[PubkeyLike, None] = None,
) -> Instruction:
    program = config.router_program_id
    if registry is None:
        registry = derive_registry(program).address
    data = encode(schemas.UPDATE_RISK_PARAMS, params.as_fields())
    return make_instruction(program, UpdateRiskParamsAccounts(registry, governance), data)


# ---- payload decoding ----

PAYLOAD_LAYOUTS: Dict[RouterInstruction, Layout] = {
    RouterInstruction.INITIALIZE_PORTFOLIO: schemas.INITIALIZE_PORTFOLIO,
    RouterInstruction.DEPOSIT: schemas.DEPOSIT,
    RouterInstruction.WITHDRAW: schemas.WITHDRAW,
    RouterInstruction.LIQUIDATE_USER: schemas.LIQUIDATE_USER,
    RouterInstruction.ROUTER_RESERVE: schemas.ROUTER_RESERVE,
    RouterInstruction.ROUTER_RELEASE: schemas.ROUTER_RELEASE,
    RouterInstruction.UPDATE_RISK_PARAMS: schemas.UPDATE_RISK_PARAMS,
}


def decode_instruction(data: bytes) -> Union[Tuple[RouterInstruction, Dict[str, object]], Invalid]:
    """Inverse of the builders above; unknown or malformed payloads give Invalid."""
    if not data:
        return Invalid(DecodeError.TOO_SHORT, "empty payload")
    try:
        op = RouterInstruction(data[0])
    except ValueError:
        return Invalid(DecodeError.BAD_MAGIC, f"unknown router discriminator {data[0]}")
    if op == RouterInstruction.EXECUTE_CROSS_SLAB:
        if len(data) < 2:
            return Invalid(DecodeError.TOO_SHORT, "missing num_splits")
        if data[1] == 0:
            return Invalid(DecodeError.FIELD_OUT_OF_RANGE, "num_splits=0")
        layout = schemas.execute_cross_slab(data[1])
    else:
        found = PAYLOAD_LAYOUTS.get(op)
        if found is None:
            return Invalid(DecodeError.BAD_MAGIC, f"no client layout for {op.name}")
        layout = found
    fields = decode(layout, data)
    if isinstance(fields, Invalid):
        return fields
    return op, fields


__all__ = [
    "OrderSplit",
    "PlaceOrderParams",
    "RiskParams",
    "InitializePortfolioAccounts",
    "CollateralAccounts",
    "ExecuteCrossSlabAccounts",
    "ReserveAccounts",
    "ReleaseAccounts",
    "LiquidateAccounts",
    "UpdateRiskParamsAccounts",
    "initialize_portfolio",
    "deposit",
    "withdraw",
    "execute_cross_slab",
    "place_order",
    "lp_seat_for",
    "router_reserve",
    "router_release",
    "liquidate_user",
    "update_risk_params",
    "PAYLOAD_LAYOUTS",
    "decode_instruction",
]
