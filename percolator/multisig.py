"""
Authority checks: does `candidate` satisfy the authority attached to a
resource?

An authority address is either a plain key or a Squads v4 multisig account.
A committee grants on membership alone; the multisig threshold is enforced
on-chain when the proposal executes, never here. Nothing is cached: every
check fetches the committee account again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional, Union

from .accounts import Multisig, Proposal, ProposalStatus, RegistryParams, decode_committee
from .codec import Invalid
from .keys import PubkeyLike, pubkey_str

log = logging.getLogger(__name__)

# address -> raw account bytes, None when the account does not exist
Fetch = Callable[[str], Optional[bytes]]

NOT_AUTHORIZED = "NotAuthorized"


@dataclass(frozen=True)
class SingleKey:
    address: str

    def permits(self, candidate: PubkeyLike) -> bool:
        return pubkey_str(candidate) == self.address


@dataclass(frozen=True)
class Committee:
    address: str
    members: FrozenSet[str]
    threshold: int

    @classmethod
    def from_multisig(cls, address: str, record: Multisig) -> "Committee":
        return cls(address, frozenset(record.member_keys), record.threshold)

    def permits(self, candidate: PubkeyLike) -> bool:
        return pubkey_str(candidate) in self.members


Authority = Union[SingleKey, Committee]


def resolve_authority(address: PubkeyLike, data: Optional[bytes]) -> Authority:
    """One committee decode; anything that is not a multisig is a plain key."""
    address = pubkey_str(address)
    if data is None:
        return SingleKey(address)
    record = decode_committee(data)
    if isinstance(record, Invalid):
        log.debug("%s is not a committee (%s)", address, record)
        return SingleKey(address)
    return Committee.from_multisig(address, record)


@dataclass(frozen=True)
class Authorization:
    granted: bool
    reason: str
    authority: Optional[Authority] = None

    def __bool__(self) -> bool:
        return self.granted


def check_permission(address: PubkeyLike, candidate: PubkeyLike, fetch: Fetch) -> Authorization:
    address = pubkey_str(address)
    candidate = pubkey_str(candidate)
    if address == candidate:
        return Authorization(True, "direct signer", SingleKey(address))
    authority = resolve_authority(address, fetch(address))
    if isinstance(authority, Committee) and authority.permits(candidate):
        return Authorization(True, "committee member", authority)
    return Authorization(False, NOT_AUTHORIZED, authority)


class Permission(str, Enum):
    PUBLIC = "public"
    GOVERNANCE = "governance"
    INSURANCE = "insurance"


def has_permission(
    registry: RegistryParams,
    wallet: PubkeyLike,
    permission: Permission,
    fetch: Fetch,
) -> Authorization:
    """Governance / insurance gate using the authorities stored in the registry."""
    if permission == Permission.PUBLIC:
        return Authorization(True, "public")
    if permission == Permission.GOVERNANCE:
        return check_permission(registry.governance, wallet, fetch)
    return check_permission(registry.insurance_authority, wallet, fetch)


def pending_proposals(
    proposals: Iterable[Proposal],
    wallet: PubkeyLike,
    multisig: Optional[PubkeyLike] = None,
) -> List[Proposal]:
    """Active proposals `wallet` has not approved yet, by transaction index."""
    wallet = pubkey_str(wallet)
    scope = pubkey_str(multisig) if multisig is not None else None
    pending = [
        proposal
        for proposal in proposals
        if proposal.status == ProposalStatus.ACTIVE
        and wallet not in proposal.approved
        and (scope is None or proposal.multisig == scope)
    ]
    return sorted(pending, key=lambda p: p.transaction_index)


__all__ = [
    "Fetch",
    "NOT_AUTHORIZED",
    "SingleKey",
    "Committee",
    "Authority",
    "resolve_authority",
    "Authorization",
    "check_permission",
    "Permission",
    "has_permission",
    "pending_proposals",
]
