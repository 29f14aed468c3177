"""
Legacy Solana transaction assembly and Ed25519 signing.

Wire format (legacy message):

    header            3 x u8 (required sigs, readonly signed, readonly unsigned)
    account keys      shortvec len + 32-byte keys
    recent blockhash  32 bytes
    instructions      shortvec len + (program idx u8, shortvec idxs, shortvec data)

A transaction is shortvec(len) + 64-byte signatures followed by the message.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from .errors import ClientError
from .instructions.common import Instruction
from .keys import PubkeyLike, b58encode, pubkey_bytes, pubkey_str

PACKET_DATA_SIZE = 1232


@dataclass
class Keypair:
    private_key: Ed25519PrivateKey
    public_key_bytes: bytes

    @classmethod
    def _from_private(cls, private_key: Ed25519PrivateKey) -> "Keypair":
        public_key_bytes = private_key.public_key().public_bytes(
            serialization.Encoding.Raw,
            serialization.PublicFormat.Raw,
        )
        return cls(private_key=private_key, public_key_bytes=public_key_bytes)

    @classmethod
    def generate(cls) -> "Keypair":
        return cls._from_private(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> "Keypair":
        if len(seed) != 32:
            raise ValueError(f"ed25519 seed must be 32 bytes, got {len(seed)}")
        return cls._from_private(Ed25519PrivateKey.from_private_bytes(bytes(seed)))

    @classmethod
    def from_secret_key(cls, secret: bytes) -> "Keypair":
        """64-byte Solana secret key (seed || pubkey)."""
        if len(secret) != 64:
            raise ValueError(f"secret key must be 64 bytes, got {len(secret)}")
        keypair = cls.from_seed(secret[:32])
        if keypair.public_key_bytes != bytes(secret[32:]):
            raise ValueError("secret key public half does not match its seed")
        return keypair

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "Keypair":
        """Solana CLI keypair file: a JSON array of 64 ints."""
        values = json.loads(Path(path).expanduser().read_text())
        return cls.from_secret_key(bytes(values))

    @property
    def pubkey(self) -> str:
        return b58encode(self.public_key_bytes)

    @property
    def secret_key(self) -> bytes:
        seed = self.private_key.private_bytes(
            serialization.Encoding.Raw,
            serialization.PrivateFormat.Raw,
            serialization.NoEncryption(),
        )
        return seed + self.public_key_bytes

    def sign(self, message: bytes) -> bytes:
        return self.private_key.sign(message)


def encode_shortvec(value: int) -> bytes:
    if value < 0 or value > 0xFFFF:
        raise ValueError(f"shortvec length out of range: {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def read_shortvec(data: bytes, offset: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while True:
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, offset
        shift += 7


@dataclass(frozen=True)
class CompiledInstruction:
    program_index: int
    account_indexes: Tuple[int, ...]
    data: bytes


@dataclass(frozen=True)
class Message:
    num_required_signatures: int
    num_readonly_signed: int
    num_readonly_unsigned: int
    account_keys: Tuple[str, ...]
    recent_blockhash: str
    instructions: Tuple[CompiledInstruction, ...]

    @property
    def signers(self) -> Tuple[str, ...]:
        return self.account_keys[: self.num_required_signatures]

    def is_writable(self, index: int) -> bool:
        if index < self.num_required_signatures:
            return index < self.num_required_signatures - self.num_readonly_signed
        return index < len(self.account_keys) - self.num_readonly_unsigned

    def serialize(self) -> bytes:
        out = bytearray(
            [self.num_required_signatures, self.num_readonly_signed, self.num_readonly_unsigned]
        )
        out += encode_shortvec(len(self.account_keys))
        for key in self.account_keys:
            out += pubkey_bytes(key)
        out += pubkey_bytes(self.recent_blockhash)
        out += encode_shortvec(len(self.instructions))
        for ix in self.instructions:
            out.append(ix.program_index)
            out += encode_shortvec(len(ix.account_indexes))
            out += bytes(ix.account_indexes)
            out += encode_shortvec(len(ix.data))
            out += ix.data
        return bytes(out)


def compile_message(
    instructions: Sequence[Instruction],
    fee_payer: PubkeyLike,
    recent_blockhash: str,
) -> Message:
    """Dedupe accounts (roles OR-merged), order them signer/writable first."""
    payer = pubkey_str(fee_payer)
    roles: Dict[str, List[bool]] = {payer: [True, True]}
    order: List[str] = [payer]

    def note(key: str, signer: bool, writable: bool) -> None:
        if key not in roles:
            roles[key] = [False, False]
            order.append(key)
        roles[key][0] |= signer
        roles[key][1] |= writable

    for ix in instructions:
        for meta in ix.accounts:
            note(meta.pubkey, meta.is_signer, meta.is_writable)
        note(ix.program_id, False, False)

    groups: Tuple[List[str], List[str], List[str], List[str]] = ([], [], [], [])
    for key in order:
        signer, writable = roles[key]
        groups[(0 if signer else 2) + (0 if writable else 1)].append(key)
    keys = tuple(key for group in groups for key in group)
    index = {key: idx for idx, key in enumerate(keys)}

    compiled = tuple(
        CompiledInstruction(
            program_index=index[ix.program_id],
            account_indexes=tuple(index[meta.pubkey] for meta in ix.accounts),
            data=ix.data,
        )
        for ix in instructions
    )
    return Message(
        num_required_signatures=len(groups[0]) + len(groups[1]),
        num_readonly_signed=len(groups[1]),
        num_readonly_unsigned=len(groups[3]),
        account_keys=keys,
        recent_blockhash=recent_blockhash,
        instructions=compiled,
    )


@dataclass
class Transaction:
    message: Message
    signatures: List[Optional[bytes]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.signatures:
            self.signatures = [None] * self.message.num_required_signatures

    @classmethod
    def build(
        cls,
        instructions: Sequence[Instruction],
        fee_payer: PubkeyLike,
        recent_blockhash: str,
    ) -> "Transaction":
        return cls(compile_message(instructions, fee_payer, recent_blockhash))

    def sign(self, *keypairs: Keypair) -> "Transaction":
        payload = self.message.serialize()
        signers = self.message.signers
        for keypair in keypairs:
            if keypair.pubkey not in signers:
                raise ClientError(f"{keypair.pubkey} 不是该交易的签名者")
            self.signatures[signers.index(keypair.pubkey)] = keypair.sign(payload)
        return self

    @property
    def is_fully_signed(self) -> bool:
        return all(sig is not None for sig in self.signatures)

    def serialize(self) -> bytes:
        if not self.is_fully_signed:
            missing = [key for key, sig in zip(self.message.signers, self.signatures) if sig is None]
            raise ClientError(f"missing signatures for {missing}")
        out = bytearray(encode_shortvec(len(self.signatures)))
        for sig in self.signatures:
            out += sig  # type: ignore[operator]
        out += self.message.serialize()
        if len(out) > PACKET_DATA_SIZE:
            raise ClientError(f"transaction is {len(out)} bytes, limit {PACKET_DATA_SIZE}")
        return bytes(out)


__all__ = [
    "PACKET_DATA_SIZE",
    "Keypair",
    "encode_shortvec",
    "read_shortvec",
    "CompiledInstruction",
    "Message",
    "compile_message",
    "Transaction",
]
