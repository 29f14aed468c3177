"""Percolator client: wire codec, address derivation and authority checks."""

from .accounts import (
    BatchResult,
    Multisig,
    MultisigMember,
    OracleStatus,
    PriceOracle,
    Proposal,
    ProposalStatus,
    RegistryParams,
    decode_batch,
    decode_committee,
    decode_oracle,
    decode_proposal,
    decode_registry,
    oracle_status,
)
from .codec import DecodeError, Invalid, decode, encode
from .config import ProtocolConfig
from .errors import (
    AccountNotFound,
    ClientError,
    CodecError,
    DiscriminantSpaceExhausted,
    FieldOutOfRange,
    IllegalOwner,
    LayoutError,
    PercolatorError,
    PointOnCurve,
    RpcError,
    SeedTooLong,
    ValueTooLargeForWidth,
)
from .keys import DerivedAddress, create_program_address, create_with_seed, find_program_address
from .layout import Field, Layout, LayoutRegistry
from .multisig import (
    Authorization,
    Committee,
    Permission,
    SingleKey,
    check_permission,
    has_permission,
    pending_proposals,
    resolve_authority,
)
from .schemas import REGISTRY

__version__ = "0.1.0"

__all__ = [
    "BatchResult",
    "Multisig",
    "MultisigMember",
    "OracleStatus",
    "PriceOracle",
    "Proposal",
    "ProposalStatus",
    "RegistryParams",
    "decode_batch",
    "decode_committee",
    "decode_oracle",
    "decode_proposal",
    "decode_registry",
    "oracle_status",
    "DecodeError",
    "Invalid",
    "decode",
    "encode",
    "ProtocolConfig",
    "AccountNotFound",
    "ClientError",
    "CodecError",
    "DiscriminantSpaceExhausted",
    "FieldOutOfRange",
    "IllegalOwner",
    "LayoutError",
    "PercolatorError",
    "PointOnCurve",
    "RpcError",
    "SeedTooLong",
    "ValueTooLargeForWidth",
    "DerivedAddress",
    "create_program_address",
    "create_with_seed",
    "find_program_address",
    "Field",
    "Layout",
    "LayoutRegistry",
    "Authorization",
    "Committee",
    "Permission",
    "SingleKey",
    "check_permission",
    "has_permission",
    "pending_proposals",
    "resolve_authority",
    "REGISTRY",
    "__version__",
]
