"""
base58 / ed25519 / PDA 基础函数。

Address derivation follows the Solana runtime:

    create_program_address = sha256(seed_0 || ... || seed_n || program_id || "ProgramDerivedAddress")

and a candidate that decompresses to a valid ed25519 point is rejected, so a
derived address can never have a private key.
"""

from __future__ import annotations

import hashlib
from typing import Iterable, NamedTuple, Sequence, Union

from .errors import (
    DiscriminantSpaceExhausted,
    IllegalOwner,
    PointOnCurve,
    SeedTooLong,
)

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
BASE58_MAP = {ch: idx for idx, ch in enumerate(BASE58_ALPHABET)}
ED25519_P = 2**255 - 19
ED25519_D = (-121665 * pow(121666, -1, ED25519_P)) % ED25519_P

PUBKEY_LENGTH = 32
MAX_SEED_LENGTH = 32
MAX_SEEDS = 16
PDA_MARKER = b"ProgramDerivedAddress"

PubkeyLike = Union[str, bytes]


class DerivedAddress(NamedTuple):
    address: str
    bump: int


def b58encode(data: bytes) -> str:
    num = int.from_bytes(data, "big")
    if num == 0:
        return "1" * len(data)
    encoded = ""
    while num > 0:
        num, rem = divmod(num, 58)
        encoded = BASE58_ALPHABET[rem] + encoded
    leading_zero = 0
    for byte in data:
        if byte == 0:
            leading_zero += 1
        else:
            break
    return "1" * leading_zero + encoded


def b58decode(value: str) -> bytes:
    """Decode a Solana-style base58 string (no checksum)."""
    if not value:
        raise ValueError("empty base58 string")

    zero_prefix = len(value) - len(value.lstrip("1"))
    result = 0
    for ch in value:
        try:
            digit = BASE58_MAP[ch]
        except KeyError as exc:
            raise ValueError(f"invalid base58 character: {ch!r}") from exc
        result = result * 58 + digit

    decoded = result.to_bytes((result.bit_length() + 7) // 8, "big") if result else b""
    return b"\x00" * zero_prefix + decoded


def pubkey_bytes(value: PubkeyLike) -> bytes:
    """Normalise a base58 string or raw 32 bytes into raw bytes."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        raw = b58decode(value)
    if len(raw) != PUBKEY_LENGTH:
        raise ValueError(f"pubkey must be {PUBKEY_LENGTH} bytes, got {len(raw)}")
    return raw


def pubkey_str(value: PubkeyLike) -> str:
    return b58encode(pubkey_bytes(value))


def is_on_curve(pubkey: bytes) -> bool:
    if len(pubkey) != PUBKEY_LENGTH:
        return False
    y = int.from_bytes(pubkey, "little") & ((1 << 255) - 1)
    sign = pubkey[31] >> 7
    if y >= ED25519_P:
        return False
    y2 = (y * y) % ED25519_P
    u = (y2 - 1) % ED25519_P
    v = (ED25519_D * y2 + 1) % ED25519_P
    if v == 0:
        return False
    x2 = (u * pow(v, ED25519_P - 2, ED25519_P)) % ED25519_P
    x = pow(x2, (ED25519_P + 3) // 8, ED25519_P)
    if (x * x - x2) % ED25519_P != 0:
        x = (x * pow(2, (ED25519_P - 1) // 4, ED25519_P)) % ED25519_P
        if (x * x - x2) % ED25519_P != 0:
            return False
    if (x % 2) != sign:
        x = (-x) % ED25519_P
    return not (x == 0 and sign == 1)


def check_seeds(seeds: Sequence[bytes], reserve: int = 0) -> None:
    """Raise SeedTooLong before any hashing happens.

    `reserve` counts seeds the caller will append later (the bump).
    """
    if len(seeds) + reserve > MAX_SEEDS:
        raise SeedTooLong(f"最多 {MAX_SEEDS} 个 seed, got {len(seeds) + reserve}")
    for idx, seed in enumerate(seeds):
        if len(seed) > MAX_SEED_LENGTH:
            raise SeedTooLong(
                f"seed #{idx} 长度 {len(seed)} 超过 {MAX_SEED_LENGTH} 字节"
            )


def create_program_address(
    seeds: Iterable[bytes],
    program_id: PubkeyLike,
) -> bytes:
    seeds_tuple = tuple(bytes(seed) for seed in seeds)
    check_seeds(seeds_tuple)
    hasher = hashlib.sha256()
    for seed in seeds_tuple:
        hasher.update(seed)
    hasher.update(pubkey_bytes(program_id))
    hasher.update(PDA_MARKER)
    digest = hasher.digest()
    if is_on_curve(digest):
        raise PointOnCurve("PDA 落在曲线上")
    return digest


def find_program_address(
    seeds: Sequence[bytes],
    program_id: PubkeyLike,
) -> DerivedAddress:
    seeds_tuple = tuple(bytes(seed) for seed in seeds)
    check_seeds(seeds_tuple, reserve=1)
    program = pubkey_bytes(program_id)
    for bump in range(255, -1, -1):
        try:
            addr = create_program_address(seeds_tuple + (bytes([bump]),), program)
        except PointOnCurve:
            continue
        return DerivedAddress(b58encode(addr), bump)
    raise DiscriminantSpaceExhausted("无法找到合法 PDA")


def create_with_seed(base: PubkeyLike, seed: str, owner: PubkeyLike) -> str:
    """Address for SystemProgram.createAccountWithSeed (no bump search)."""
    seed_raw = seed.encode("utf-8")
    if len(seed_raw) > MAX_SEED_LENGTH:
        raise SeedTooLong(f"seed {seed!r} 长度超过 {MAX_SEED_LENGTH} 字节")
    owner_raw = pubkey_bytes(owner)
    if owner_raw[-len(PDA_MARKER):] == PDA_MARKER:
        raise IllegalOwner("owner ends with the PDA marker")
    digest = hashlib.sha256(pubkey_bytes(base) + seed_raw + owner_raw).digest()
    return b58encode(digest)


__all__ = [
    "BASE58_ALPHABET",
    "PUBKEY_LENGTH",
    "MAX_SEED_LENGTH",
    "MAX_SEEDS",
    "PDA_MARKER",
    "DerivedAddress",
    "PubkeyLike",
    "b58encode",
    "b58decode",
    "pubkey_bytes",
    "pubkey_str",
    "is_on_curve",
    "check_seeds",
    "create_program_address",
    "find_program_address",
    "create_with_seed",
]
