"""
Every fixed layout this client speaks, collected in `REGISTRY`.

Offsets (account records):

    PriceOracle (128 bytes)                 RegistryParams (160 bytes)
      0x00 magic "PRCLORCL"                   0x00 magic "PRCLREGY"
      0x08 version u8                         0x08 version u8
      0x09 bump u8                            0x09 bump u8
      0x0a padding[6]                         0x0a padding[6]
      0x10 authority pubkey                   0x10 router_id pubkey
      0x30 instrument pubkey                  0x30 governance pubkey
      0x50 price i64 (1e6)                    0x50 insurance_authority pubkey
      0x58 timestamp i64                      0x70 imr_bps / mmr_bps / liquidation_band_bps u64
      0x60 confidence i64 (1e6)               0x88 max_oracle_staleness_secs i64
      0x68 reserved[24]                       0x90 slab_count u16, reserved[14]

Squads v4 accounts are Anchor accounts: the 8-byte magic is
sha256("account:<Name>")[:8] and only the fixed head lives here, the
variable tails are walked in `accounts.py`.
"""

from __future__ import annotations

import hashlib
from functools import lru_cache

from .codec import CONTEXT_ID_KIND
from .constants import OracleInstruction, RouterInstruction, SystemInstruction
from .errors import FieldOutOfRange, ValueTooLargeForWidth
from .layout import Layout, LayoutRegistry

ORACLE_MAGIC = b"PRCLORCL"
REGISTRY_MAGIC = b"PRCLREGY"
ORACLE_VERSIONS = (0,)
REGISTRY_VERSIONS = (0,)
MAX_SPLITS = 255


def anchor_discriminator(account_name: str) -> bytes:
    return hashlib.sha256(f"account:{account_name}".encode("ascii")).digest()[:8]


def _router(op: RouterInstruction) -> bytes:
    return bytes([op])


def _oracle(op: OracleInstruction) -> bytes:
    return bytes([op])


def _system(op: SystemInstruction) -> bytes:
    return int(op).to_bytes(4, "little")


REGISTRY = LayoutRegistry()

# ---- account records ----

PRICE_ORACLE = REGISTRY.register(
    Layout.packed(
        "oracle.price_oracle",
        [
            ("version", "u8"),
            ("bump", "u8"),
            ("_padding", "bytes", 6),
            ("authority", "pubkey"),
            ("instrument", "pubkey"),
            ("price", "i64"),
            ("timestamp", "i64"),
            ("confidence", "i64"),
            ("_reserved", "bytes", 24),
        ],
        magic=ORACLE_MAGIC,
        version_field="version",
        versions=ORACLE_VERSIONS,
    )
)

REGISTRY_PARAMS = REGISTRY.register(
    Layout.packed(
        "router.registry",
        [
            ("version", "u8"),
            ("bump", "u8"),
            ("_padding", "bytes", 6),
            ("router_id", "pubkey"),
            ("governance", "pubkey"),
            ("insurance_authority", "pubkey"),
            ("imr_bps", "u64"),
            ("mmr_bps", "u64"),
            ("liquidation_band_bps", "u64"),
            ("max_oracle_staleness_secs", "i64"),
            ("slab_count", "u16"),
            ("_reserved", "bytes", 14),
        ],
        magic=REGISTRY_MAGIC,
        version_field="version",
        versions=REGISTRY_VERSIONS,
    )
)

SQUADS_MULTISIG_HEAD = REGISTRY.register(
    Layout.packed(
        "squads.multisig",
        [
            ("create_key", "pubkey"),
            ("config_authority", "pubkey"),
            ("threshold", "u16"),
            ("time_lock", "u32"),
            ("transaction_index", "u64"),
            ("stale_transaction_index", "u64"),
        ],
        magic=anchor_discriminator("Multisig"),
    )
)

SQUADS_MEMBER = REGISTRY.register(
    Layout.packed(
        "squads.member",
        [("key", "pubkey"), ("permissions", "u8")],
        bounds={"permissions": (0, 7)},
    )
)

SQUADS_PROPOSAL_HEAD = REGISTRY.register(
    Layout.packed(
        "squads.proposal",
        [("multisig", "pubkey"), ("transaction_index", "u64")],
        magic=anchor_discriminator("Proposal"),
    )
)

# ---- router instructions ----

INITIALIZE_PORTFOLIO = REGISTRY.register(
    Layout.packed(
        "router.initialize_portfolio",
        [("user", "pubkey")],
        magic=_router(RouterInstruction.INITIALIZE_PORTFOLIO),
    )
)

DEPOSIT = REGISTRY.register(
    Layout.packed(
        "router.deposit",
        [("amount", "u64")],
        magic=_router(RouterInstruction.DEPOSIT),
    )
)

WITHDRAW = REGISTRY.register(
    Layout.packed(
        "router.withdraw",
        [("amount", "u64")],
        magic=_router(RouterInstruction.WITHDRAW),
    )
)

ORDER_SPLIT = REGISTRY.register(
    Layout.packed(
        "router.split",
        [("side", "u8"), ("qty", "i64"), ("limit_px", "i64")],
        bounds={"side": (0, 1)},
    )
)

LIQUIDATE_USER = REGISTRY.register(
    Layout.packed(
        "router.liquidate_user",
        [("target_user", "pubkey")],
        magic=_router(RouterInstruction.LIQUIDATE_USER),
    )
)

ROUTER_RESERVE = REGISTRY.register(
    Layout.packed(
        "router.reserve",
        [("amount", "u64"), ("context_id", CONTEXT_ID_KIND)],
        magic=_router(RouterInstruction.ROUTER_RESERVE),
    )
)

ROUTER_RELEASE = REGISTRY.register(
    Layout.packed(
        "router.release",
        [("context_id", CONTEXT_ID_KIND)],
        magic=_router(RouterInstruction.ROUTER_RELEASE),
    )
)

UPDATE_RISK_PARAMS = REGISTRY.register(
    Layout.packed(
        "router.update_risk_params",
        [
            ("imr_bps", "u64"),
            ("mmr_bps", "u64"),
            ("liquidation_band_bps", "u64"),
            ("max_oracle_staleness_secs", "i64"),
        ],
        magic=_router(RouterInstruction.UPDATE_RISK_PARAMS),
    )
)


@lru_cache(maxsize=None)
def execute_cross_slab(num_splits: int) -> Layout:
    """discriminator (1) + num_splits (1) + num_splits * split (17)."""
    if num_splits > MAX_SPLITS:
        raise ValueTooLargeForWidth(f"num_splits {num_splits} does not fit in u8")
    if num_splits < 1:
        raise FieldOutOfRange(f"num_splits must be in [1, {MAX_SPLITS}], got {num_splits}")
    return Layout.packed(
        f"router.execute_cross_slab[{num_splits}]",
        [("num_splits", "u8"), ("splits", ORDER_SPLIT, num_splits)],
        magic=_router(RouterInstruction.EXECUTE_CROSS_SLAB),
        bounds={"num_splits": (num_splits, num_splits)},
    )


# ---- oracle instructions ----

INITIALIZE_ORACLE = REGISTRY.register(
    Layout.packed(
        "oracle.initialize",
        [("initial_price", "i64"), ("bump", "u8")],
        magic=_oracle(OracleInstruction.INITIALIZE),
    )
)

UPDATE_PRICE = REGISTRY.register(
    Layout.packed(
        "oracle.update_price",
        [("price", "i64"), ("confidence", "i64")],
        magic=_oracle(OracleInstruction.UPDATE_PRICE),
    )
)

# ---- system program ----

CREATE_ACCOUNT = REGISTRY.register(
    Layout.packed(
        "system.create_account",
        [("lamports", "u64"), ("space", "u64"), ("owner", "pubkey")],
        magic=_system(SystemInstruction.CREATE_ACCOUNT),
    )
)


@lru_cache(maxsize=None)
def create_account_with_seed(seed_length: int) -> Layout:
    """The seed is a u64-length-prefixed string, so the layout depends on its length."""
    return Layout.packed(
        f"system.create_account_with_seed[{seed_length}]",
        [
            ("base", "pubkey"),
            ("seed_length", "u64"),
            ("seed", "bytes", seed_length),
            ("lamports", "u64"),
            ("space", "u64"),
            ("owner", "pubkey"),
        ],
        magic=_system(SystemInstruction.CREATE_ACCOUNT_WITH_SEED),
        bounds={"seed_length": (seed_length, seed_length)},
    )


__all__ = [
    "REGISTRY",
    "ORACLE_MAGIC",
    "REGISTRY_MAGIC",
    "ORACLE_VERSIONS",
    "REGISTRY_VERSIONS",
    "MAX_SPLITS",
    "anchor_discriminator",
    "PRICE_ORACLE",
    "REGISTRY_PARAMS",
    "SQUADS_MULTISIG_HEAD",
    "SQUADS_MEMBER",
    "SQUADS_PROPOSAL_HEAD",
    "INITIALIZE_PORTFOLIO",
    "DEPOSIT",
    "WITHDRAW",
    "ORDER_SPLIT",
    "LIQUIDATE_USER",
    "ROUTER_RESERVE",
    "ROUTER_RELEASE",
    "UPDATE_RISK_PARAMS",
    "execute_cross_slab",
    "INITIALIZE_ORACLE",
    "UPDATE_PRICE",
    "CREATE_ACCOUNT",
    "create_account_with_seed",
]
