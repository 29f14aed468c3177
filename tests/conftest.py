import pytest

from percolator.config import ProtocolConfig
from percolator.keys import b58encode


def make_key(n: int) -> str:
    return b58encode(bytes([n]) * 32)


@pytest.fixture
def key():
    return make_key


@pytest.fixture
def router_program():
    return make_key(200)


@pytest.fixture
def oracle_program():
    return make_key(201)


@pytest.fixture
def config(router_program, oracle_program):
    return ProtocolConfig(router_program_id=router_program, oracle_program_id=oracle_program)
