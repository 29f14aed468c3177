"""Exception types shared by the codec, deriver and transport layers."""

from __future__ import annotations


class PercolatorError(Exception):
    pass


class LayoutError(PercolatorError):
    """A layout descriptor is internally inconsistent (programming error)."""


class CodecError(PercolatorError, ValueError):
    pass


class ValueTooLargeForWidth(CodecError):
    """Value does not fit in the declared field width."""


class FieldOutOfRange(CodecError):
    """Value fits the width but lies outside the field's declared bounds."""


class SeedTooLong(PercolatorError, ValueError):
    """Serialized seed list exceeds the platform limits."""


class PointOnCurve(PercolatorError, ValueError):
    """Derived candidate landed on the ed25519 curve."""


class IllegalOwner(PercolatorError, ValueError):
    pass


class DiscriminantSpaceExhausted(PercolatorError, RuntimeError):
    """No bump in 255..0 produced an off-curve address."""


class RpcError(PercolatorError, RuntimeError):
    pass


class AccountNotFound(RpcError):
    pass


class ClientError(PercolatorError, RuntimeError):
    pass


__all__ = [
    "PercolatorError",
    "LayoutError",
    "CodecError",
    "ValueTooLargeForWidth",
    "FieldOutOfRange",
    "SeedTooLong",
    "PointOnCurve",
    "IllegalOwner",
    "DiscriminantSpaceExhausted",
    "RpcError",
    "AccountNotFound",
    "ClientError",
]
