"""
Account decoders: raw account bytes -> typed records.

Every `decode_*` here returns the record or an `Invalid`; none of them raise
on malformed bytes. Squads v4 accounts have a fixed head (see `schemas`) and
a Borsh tail that is walked by hand:

    Multisig tail : rent_collector Option<Pubkey>, bump u8,
                    members Vec<{key Pubkey, permissions u8}>
    Proposal tail : status enum (u8 tag + i64 timestamp except Executing),
                    bump u8, approved / rejected / cancelled Vec<Pubkey>
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Callable, Generic, Iterable, List, Optional, Tuple, TypeVar, Union

from . import schemas
from .codec import DecodeError, Invalid, decode
from .constants import MAX_ORACLE_STALENESS_SECS, from_fixed
from .keys import PUBKEY_LENGTH, b58encode
from .layout import Layout

log = logging.getLogger(__name__)

T = TypeVar("T")

# Squads member permission bits
PERMISSION_INITIATE = 1 << 0
PERMISSION_VOTE = 1 << 1
PERMISSION_EXECUTE = 1 << 2


@dataclass(frozen=True)
class PriceOracle:
    version: int
    bump: int
    authority: str
    instrument: str
    price: int
    timestamp: int
    confidence: int

    @property
    def price_ui(self) -> Decimal:
        return from_fixed(self.price)

    @property
    def confidence_ui(self) -> Decimal:
        return from_fixed(self.confidence)


@dataclass(frozen=True)
class RegistryParams:
    version: int
    bump: int
    router_id: str
    governance: str
    insurance_authority: str
    imr_bps: int
    mmr_bps: int
    liquidation_band_bps: int
    max_oracle_staleness_secs: int
    slab_count: int


@dataclass(frozen=True)
class MultisigMember:
    key: str
    permissions: int

    @property
    def can_initiate(self) -> bool:
        return bool(self.permissions & PERMISSION_INITIATE)

    @property
    def can_vote(self) -> bool:
        return bool(self.permissions & PERMISSION_VOTE)

    @property
    def can_execute(self) -> bool:
        return bool(self.permissions & PERMISSION_EXECUTE)


@dataclass(frozen=True)
class Multisig:
    create_key: str
    config_authority: str
    threshold: int
    time_lock: int
    transaction_index: int
    stale_transaction_index: int
    rent_collector: Optional[str]
    bump: int
    members: Tuple[MultisigMember, ...]

    @property
    def member_keys(self) -> Tuple[str, ...]:
        return tuple(member.key for member in self.members)

    def is_member(self, key: str) -> bool:
        return key in self.member_keys


class ProposalStatus(IntEnum):
    DRAFT = 0
    ACTIVE = 1
    REJECTED = 2
    APPROVED = 3
    EXECUTING = 4
    EXECUTED = 5
    CANCELLED = 6


@dataclass(frozen=True)
class Proposal:
    multisig: str
    transaction_index: int
    status: ProposalStatus
    status_timestamp: Optional[int]
    bump: int
    approved: Tuple[str, ...]
    rejected: Tuple[str, ...]
    cancelled: Tuple[str, ...]


# ---- fixed records ----


def decode_oracle(data: bytes) -> Union[PriceOracle, Invalid]:
    fields = decode(schemas.PRICE_ORACLE, data)
    if isinstance(fields, Invalid):
        return fields
    return PriceOracle(**fields)


def decode_registry(data: bytes) -> Union[RegistryParams, Invalid]:
    fields = decode(schemas.REGISTRY_PARAMS, data)
    if isinstance(fields, Invalid):
        return fields
    return RegistryParams(**fields)


# ---- Squads v4 (head + Borsh tail) ----


class _Truncated(Exception):
    pass


class _BadTag(Exception):
    pass


class _Cursor:
    def __init__(self, data: bytes, pos: int) -> None:
        self.data = data
        self.pos = pos

    def take(self, n: int) -> bytes:
        if n < 0 or self.pos + n > len(self.data):
            raise _Truncated(f"need {n} bytes at {self.pos}, have {len(self.data) - self.pos}")
        chunk = self.data[self.pos : self.pos + n]
        self.pos += n
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u32(self) -> int:
        return struct.unpack("<I", self.take(4))[0]

    def i64(self) -> int:
        return struct.unpack("<q", self.take(8))[0]

    def pubkey(self) -> str:
        return b58encode(self.take(PUBKEY_LENGTH))

    def option_pubkey(self) -> Optional[str]:
        tag = self.u8()
        if tag == 0:
            return None
        if tag != 1:
            raise _BadTag(f"Option tag {tag}")
        return self.pubkey()

    def vec_len(self, item_size: int) -> int:
        count = self.u32()
        # bound the length by what is left before allocating anything
        if count * item_size > len(self.data) - self.pos:
            raise _Truncated(f"vec of {count} x {item_size} bytes overruns account")
        return count

    def pubkey_vec(self) -> Tuple[str, ...]:
        return tuple(self.pubkey() for _ in range(self.vec_len(PUBKEY_LENGTH)))


def _walk(head: Layout, body: Callable[[_Cursor], T], data: bytes) -> Union[T, Invalid]:
    cursor = _Cursor(data, head.size)
    try:
        return body(cursor)
    except _Truncated as exc:
        return Invalid(DecodeError.TOO_SHORT, str(exc))
    except _BadTag as exc:
        return Invalid(DecodeError.FIELD_OUT_OF_RANGE, str(exc))


def decode_committee(data: bytes) -> Union[Multisig, Invalid]:
    """Squads v4 `Multisig` account."""
    data = bytes(data)
    head = decode(schemas.SQUADS_MULTISIG_HEAD, data)
    if isinstance(head, Invalid):
        return head

    def tail(cursor: _Cursor) -> Union[Multisig, Invalid]:
        rent_collector = cursor.option_pubkey()
        bump = cursor.u8()
        count = cursor.vec_len(schemas.SQUADS_MEMBER.size)
        members = []
        for _ in range(count):
            member = decode(schemas.SQUADS_MEMBER, data, cursor.pos)
            if isinstance(member, Invalid):
                return member
            cursor.take(schemas.SQUADS_MEMBER.size)
            members.append(MultisigMember(**member))
        # threshold is kept as read; only an empty member list is malformed
        if not members:
            return Invalid(DecodeError.FIELD_OUT_OF_RANGE, "multisig has no members")
        return Multisig(rent_collector=rent_collector, bump=bump, members=tuple(members), **head)

    return _walk(schemas.SQUADS_MULTISIG_HEAD, tail, data)


def decode_proposal(data: bytes) -> Union[Proposal, Invalid]:
    """Squads v4 `Proposal` account."""
    data = bytes(data)
    head = decode(schemas.SQUADS_PROPOSAL_HEAD, data)
    if isinstance(head, Invalid):
        return head

    def tail(cursor: _Cursor) -> Proposal:
        tag = cursor.u8()
        try:
            status = ProposalStatus(tag)
        except ValueError:
            raise _BadTag(f"proposal status {tag}") from None
        timestamp = None if status == ProposalStatus.EXECUTING else cursor.i64()
        bump = cursor.u8()
        approved = cursor.pubkey_vec()
        rejected = cursor.pubkey_vec()
        cancelled = cursor.pubkey_vec()
        return Proposal(
            status=status,
            status_timestamp=timestamp,
            bump=bump,
            approved=approved,
            rejected=rejected,
            cancelled=cancelled,
            **head,
        )

    return _walk(schemas.SQUADS_PROPOSAL_HEAD, tail, data)


# ---- batches ----


@dataclass
class BatchResult(Generic[T]):
    records: List[Tuple[str, T]] = field(default_factory=list)
    errors: List[Tuple[str, Invalid]] = field(default_factory=list)

    @property
    def dropped(self) -> int:
        return len(self.errors)

    def __len__(self) -> int:
        return len(self.records)


def decode_batch(
    pairs: Iterable[Tuple[str, Optional[bytes]]],
    decoder: Callable[[bytes], Union[T, Invalid]],
    expected_size: Optional[int] = None,
) -> BatchResult[T]:
    """
    Decode `(address, data)` pairs one by one. A bad item never affects its
    neighbours: it lands in `errors`, the rest keep their input order.
    `data=None` means the account does not exist.
    """
    result: BatchResult[T] = BatchResult()
    for address, data in pairs:
        if data is None:
            outcome: Union[T, Invalid] = Invalid(DecodeError.TOO_SHORT, "account missing")
        elif expected_size is not None and len(data) != expected_size:
            reason = DecodeError.TOO_SHORT if len(data) < expected_size else DecodeError.FIELD_OUT_OF_RANGE
            outcome = Invalid(reason, f"size {len(data)} != {expected_size}")
        else:
            outcome = decoder(data)
        if isinstance(outcome, Invalid):
            log.debug("skip %s: %s", address, outcome)
            result.errors.append((address, outcome))
        else:
            result.records.append((address, outcome))
    if result.errors:
        log.warning("decoded %d records, dropped %d", len(result.records), result.dropped)
    return result


# ---- oracle freshness ----


class OracleStatus(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    STALE = "stale"


@dataclass(frozen=True)
class OracleHealth:
    status: OracleStatus
    age_secs: int


def oracle_status(
    record: PriceOracle,
    now: int,
    max_staleness: int = MAX_ORACLE_STALENESS_SECS,
) -> OracleHealth:
    """healthy while age <= max/2, warning up to max, stale after."""
    age = max(now - record.timestamp, 0)
    if age <= max_staleness // 2:
        status = OracleStatus.HEALTHY
    elif age <= max_staleness:
        status = OracleStatus.WARNING
    else:
        status = OracleStatus.STALE
    return OracleHealth(status, age)


__all__ = [
    "PERMISSION_INITIATE",
    "PERMISSION_VOTE",
    "PERMISSION_EXECUTE",
    "PriceOracle",
    "RegistryParams",
    "MultisigMember",
    "Multisig",
    "ProposalStatus",
    "Proposal",
    "decode_oracle",
    "decode_registry",
    "decode_committee",
    "decode_proposal",
    "BatchResult",
    "decode_batch",
    "OracleStatus",
    "OracleHealth",
    "oracle_status",
]
