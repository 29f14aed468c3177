"""
Router PDA helpers (mirrors programs/router/src/pda.rs).

Seeds are ordered; reordering them yields a different address. Every helper
takes the program id explicitly so no address depends on ambient state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

from .codec import pack_context_id, pack_nonce
from .constants import (
    AUTHORITY_SEED,
    CAP_SEED,
    ESCROW_SEED,
    INSURANCE_VAULT_SEED,
    LP_SEAT_SEED,
    PORTFOLIO_ACCOUNT_SEED,
    PORTFOLIO_SEED,
    RECEIPT_SEED,
    REGISTRY_SEED,
    ROUTER_SIGNER_SEED,
    VAULT_SEED,
    VENUE_PNL_SEED,
)
from .keys import (
    DerivedAddress,
    PubkeyLike,
    create_with_seed,
    find_program_address,
    pubkey_bytes,
)


@dataclass(frozen=True)
class Seed:
    """One derivation input; `raw` is what goes into the hash."""

    kind: str
    raw: bytes

    @classmethod
    def tag(cls, value: Union[str, bytes]) -> "Seed":
        raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        return cls("tag", raw)

    @classmethod
    def identity(cls, pubkey: PubkeyLike) -> "Seed":
        return cls("identity", pubkey_bytes(pubkey))

    @classmethod
    def context_id(cls, value: int) -> "Seed":
        return cls("context_id", pack_context_id(value))

    @classmethod
    def nonce(cls, value: int) -> "Seed":
        return cls("nonce", pack_nonce(value))


SeedLike = Union[Seed, bytes]


def serialize_seeds(seeds: Sequence[SeedLike]) -> tuple:
    return tuple(seed.raw if isinstance(seed, Seed) else bytes(seed) for seed in seeds)


def derive(program_id: PubkeyLike, seeds: Sequence[SeedLike]) -> DerivedAddress:
    """PDA for `seeds` under `program_id`; bump searched 255 -> 0."""
    return find_program_address(serialize_seeds(seeds), program_id)


def derive_authority(program_id: PubkeyLike) -> DerivedAddress:
    """Router signing authority for CPIs into slabs."""
    return derive(program_id, [Seed.tag(AUTHORITY_SEED)])


def derive_router_signer(program_id: PubkeyLike) -> DerivedAddress:
    return derive(program_id, [Seed.tag(ROUTER_SIGNER_SEED)])


def derive_insurance_vault(program_id: PubkeyLike) -> DerivedAddress:
    return derive(program_id, [Seed.tag(INSURANCE_VAULT_SEED)])


def derive_registry(program_id: PubkeyLike) -> DerivedAddress:
    return derive(program_id, [Seed.tag(REGISTRY_SEED)])


def derive_vault(mint: PubkeyLike, program_id: PubkeyLike) -> DerivedAddress:
    """Collateral vault for one mint."""
    return derive(program_id, [Seed.tag(VAULT_SEED), Seed.identity(mint)])


def derive_escrow(
    user: PubkeyLike,
    slab: PubkeyLike,
    mint: PubkeyLike,
    program_id: PubkeyLike,
) -> DerivedAddress:
    return derive(
        program_id,
        [Seed.tag(ESCROW_SEED), Seed.identity(user), Seed.identity(slab), Seed.identity(mint)],
    )


def derive_cap(
    user: PubkeyLike,
    slab: PubkeyLike,
    mint: PubkeyLike,
    nonce: int,
    program_id: PubkeyLike,
) -> DerivedAddress:
    """Capability token; the u64 nonce allows several live caps per escrow."""
    return derive(
        program_id,
        [
            Seed.tag(CAP_SEED),
            Seed.identity(user),
            Seed.identity(slab),
            Seed.identity(mint),
            Seed.nonce(nonce),
        ],
    )


def derive_portfolio(user: PubkeyLike, program_id: PubkeyLike) -> DerivedAddress:
    return derive(program_id, [Seed.tag(PORTFOLIO_SEED), Seed.identity(user)])


def derive_lp_seat(
    router_id: PubkeyLike,
    matcher_state: PubkeyLike,
    portfolio: PubkeyLike,
    context_id: int,
    program_id: PubkeyLike,
) -> DerivedAddress:
    """LP seat for router x matcher x portfolio x context."""
    return derive(
        program_id,
        [
            Seed.tag(LP_SEAT_SEED),
            Seed.identity(router_id),
            Seed.identity(matcher_state),
            Seed.identity(portfolio),
            Seed.context_id(context_id),
        ],
    )


def derive_venue_pnl(
    router_id: PubkeyLike,
    matcher_state: PubkeyLike,
    program_id: PubkeyLike,
) -> DerivedAddress:
    return derive(
        program_id,
        [Seed.tag(VENUE_PNL_SEED), Seed.identity(router_id), Seed.identity(matcher_state)],
    )


def derive_receipt(
    portfolio: PubkeyLike,
    slab: PubkeyLike,
    program_id: PubkeyLike,
) -> DerivedAddress:
    return derive(
        program_id,
        [Seed.tag(RECEIPT_SEED), Seed.identity(portfolio), Seed.identity(slab)],
    )


def portfolio_address(user: PubkeyLike, program_id: PubkeyLike) -> str:
    """
    Portfolio account created by the client with create_account_with_seed.

    Not a PDA: the account is larger than the 10KB CPI allocation limit, so
    the user creates it directly and the router only adopts it.
    """
    return create_with_seed(user, PORTFOLIO_ACCOUNT_SEED, program_id)


__all__ = [
    "Seed",
    "SeedLike",
    "serialize_seeds",
    "derive",
    "derive_authority",
    "derive_router_signer",
    "derive_insurance_vault",
    "derive_registry",
    "derive_vault",
    "derive_escrow",
    "derive_cap",
    "derive_portfolio",
    "derive_lp_seat",
    "derive_venue_pnl",
    "derive_receipt",
    "portfolio_address",
]
