from decimal import Decimal

import pytest

from percolator.config import ProtocolConfig
from percolator.constants import (
    BASIS_POINTS,
    MAX_SLABS,
    OracleInstruction,
    RouterInstruction,
    SlabInstruction,
    from_fixed,
    to_fixed,
)
from percolator.errors import ClientError


def test_discriminators_are_stable():
    assert [op.value for op in RouterInstruction] == list(range(16))
    assert RouterInstruction.DEPOSIT == 3
    assert RouterInstruction.UPDATE_RISK_PARAMS == 15
    assert [op.value for op in SlabInstruction] == list(range(6))
    assert OracleInstruction.UPDATE_PRICE == 1


def test_fixed_point():
    assert to_fixed("65000.5") == 65_000_500_000
    assert to_fixed(2) == 2_000_000
    assert from_fixed(1_500_000) == Decimal("1.5")
    with pytest.raises(ValueError):
        to_fixed("0.0000001")


def test_limits():
    assert MAX_SLABS == 256
    assert BASIS_POINTS == 10_000


def test_config_normalises_and_overrides(key):
    config = ProtocolConfig(router_program_id=bytes([200]) * 32)
    assert config.router_program_id == key(200)
    assert config.with_overrides(rpc_url=None).rpc_url == config.rpc_url
    assert config.with_overrides(commitment="finalized").commitment == "finalized"
    with pytest.raises(ClientError):
        config.require_oracle_program()


def test_config_from_mapping(key):
    config = ProtocolConfig.from_mapping({"router_program_id": key(200), "unrelated": 1})
    assert config.router_program_id == key(200)
    with pytest.raises(ClientError):
        ProtocolConfig.from_mapping({})
