"""Explicit protocol configuration passed to every builder / resolver call."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from .constants import RPC_DEFAULT
from .errors import ClientError
from .keys import pubkey_str


@dataclass(frozen=True)
class ProtocolConfig:
    router_program_id: str
    oracle_program_id: Optional[str] = None
    slab_program_id: Optional[str] = None
    amm_program_id: Optional[str] = None
    governance: Optional[str] = None
    insurance_authority: Optional[str] = None
    rpc_url: str = RPC_DEFAULT
    commitment: str = "confirmed"

    def __post_init__(self) -> None:
        # normalise to base58 and fail early on malformed ids
        for name in (
            "router_program_id",
            "oracle_program_id",
            "slab_program_id",
            "amm_program_id",
            "governance",
            "insurance_authority",
        ):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, pubkey_str(value))

    def require_oracle_program(self) -> str:
        if self.oracle_program_id is None:
            raise ClientError("oracle_program_id 未配置")
        return self.oracle_program_id

    def with_overrides(self, **changes: Any) -> "ProtocolConfig":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProtocolConfig":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if "router_program_id" not in known:
            raise ClientError("router_program_id is required")
        return cls(**known)


__all__ = ["ProtocolConfig"]
