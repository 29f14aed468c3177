"""
Wire constants shared with the on-chain Percolator programs.

Discriminator values and seed tags are part of the deployed contract: never
renumber an instruction and never edit a seed tag, every derived address
that used it would move.
"""

from __future__ import annotations

from decimal import Decimal
from enum import IntEnum
from typing import Union

RPC_DEFAULT = "http://127.0.0.1:8899"

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
NATIVE_MINT = "So11111111111111111111111111111111111111112"
SQUADS_V4_PROGRAM_ID = "SQDS4ep65T869zMMBKyuUq6aD6EgTu8psMjkvj52pCf"


class RouterInstruction(IntEnum):
    INITIALIZE = 0
    INITIALIZE_PORTFOLIO = 1
    INITIALIZE_VAULT = 2
    DEPOSIT = 3
    WITHDRAW = 4
    EXECUTE_CROSS_SLAB = 5
    LIQUIDATE_USER = 6
    BURN_LP_SHARES = 7
    CANCEL_LP_ORDERS = 8
    ROUTER_RESERVE = 9
    ROUTER_RELEASE = 10
    ROUTER_LIQUIDITY = 11
    TOP_UP_INSURANCE = 12
    WITHDRAW_INSURANCE = 13
    GLOBAL_HAIRCUT = 14
    UPDATE_RISK_PARAMS = 15


class SlabInstruction(IntEnum):
    INITIALIZE = 0
    COMMIT_FILL = 1
    ADAPTER_LIQUIDITY = 2
    UPDATE_FUNDING = 3
    HALT_TRADING = 4
    RESUME_TRADING = 5


class OracleInstruction(IntEnum):
    INITIALIZE = 0
    UPDATE_PRICE = 1


class SystemInstruction(IntEnum):
    # u32 little-endian on the wire
    CREATE_ACCOUNT = 0
    CREATE_ACCOUNT_WITH_SEED = 3


class Side(IntEnum):
    BUY = 0
    SELL = 1


class TimeInForce(IntEnum):
    GTC = 0
    IOC = 1
    FOK = 2


class MakerClass(IntEnum):
    REG = 0
    DLP = 1


# ---- PDA seed tags ----
VAULT_SEED = b"vault"
ESCROW_SEED = b"escrow"
CAP_SEED = b"cap"
PORTFOLIO_SEED = b"portfolio"
REGISTRY_SEED = b"registry"
AUTHORITY_SEED = b"authority"
ROUTER_SIGNER_SEED = b"router_signer"
INSURANCE_VAULT_SEED = b"insurance_vault"
LP_SEAT_SEED = b"lp_seat"
VENUE_PNL_SEED = b"venue_pnl"
RECEIPT_SEED = b"receipt"

# create_with_seed tag for the portfolio account (client-created, >10KB)
PORTFOLIO_ACCOUNT_SEED = "portfolio"
PORTFOLIO_ACCOUNT_SIZE = 135_000
PRICE_ORACLE_SIZE = 128

# ---- limits (common/types.rs) ----
MAX_SLABS = 256
MAX_INSTRUMENTS = 32
MAX_ACCOUNTS = 5_000
MAX_ORDERS = 30_000
MAX_POSITIONS = 30_000
MAX_RESERVATIONS = 4_000
MAX_SLICES = 16_000
MAX_TRADES = 10_000
MAX_DLP = 100
MAX_AGGRESSOR_ENTRIES = 4_000
MAX_CAP_TTL_MS = 120_000
MAX_SLAB_SIZE = 10 * 1024 * 1024

BASIS_POINTS = 10_000

# Prices, confidences and quantities are fixed point with 6 implied decimals.
PRICE_SCALE = 1_000_000
MAX_ORACLE_STALENESS_SECS = 60


def to_fixed(value: Union[int, str, Decimal]) -> int:
    """'65000.5' -> 65_000_500_000. Extra precision is an error, not rounded."""
    scaled = Decimal(value) * PRICE_SCALE
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{value} has more than 6 decimal places")
    return int(scaled)


def from_fixed(raw: int) -> Decimal:
    return Decimal(raw) / PRICE_SCALE


__all__ = [
    "RPC_DEFAULT",
    "SYSTEM_PROGRAM_ID",
    "NATIVE_MINT",
    "SQUADS_V4_PROGRAM_ID",
    "RouterInstruction",
    "SlabInstruction",
    "OracleInstruction",
    "SystemInstruction",
    "Side",
    "TimeInForce",
    "MakerClass",
    "VAULT_SEED",
    "ESCROW_SEED",
    "CAP_SEED",
    "PORTFOLIO_SEED",
    "REGISTRY_SEED",
    "AUTHORITY_SEED",
    "ROUTER_SIGNER_SEED",
    "INSURANCE_VAULT_SEED",
    "LP_SEAT_SEED",
    "VENUE_PNL_SEED",
    "RECEIPT_SEED",
    "PORTFOLIO_ACCOUNT_SEED",
    "PORTFOLIO_ACCOUNT_SIZE",
    "PRICE_ORACLE_SIZE",
    "MAX_SLABS",
    "MAX_INSTRUMENTS",
    "MAX_ACCOUNTS",
    "MAX_ORDERS",
    "MAX_POSITIONS",
    "MAX_RESERVATIONS",
    "MAX_SLICES",
    "MAX_TRADES",
    "MAX_DLP",
    "MAX_AGGRESSOR_ENTRIES",
    "MAX_CAP_TTL_MS",
    "MAX_SLAB_SIZE",
    "BASIS_POINTS",
    "PRICE_SCALE",
    "MAX_ORACLE_STALENESS_SECS",
    "to_fixed",
    "from_fixed",
]
