import pytest
from blobs import make_key, multisig_blob, oracle_blob, proposal_blob, registry_blob

from percolator import schemas
from percolator.client import PercolatorClient
from percolator.config import ProtocolConfig
from percolator.constants import SQUADS_V4_PROGRAM_ID, SYSTEM_PROGRAM_ID
from percolator.errors import AccountNotFound, ClientError
from percolator.keys import pubkey_bytes
from percolator.multisig import Permission
from percolator.pda import derive_registry, portfolio_address
from percolator.rpc import AccountInfo
from percolator.transaction import Keypair

ROUTER = make_key(200)
ORACLE_PROGRAM = make_key(201)


class FakeRpc:
    def __init__(self, accounts=None, program_accounts=None):
        self.accounts = dict(accounts or {})
        self.program_accounts = program_accounts or []
        self.queries = []
        self.sent = []

    def get_account_info(self, address):
        data = self.accounts.get(address)
        if data is None:
            return None
        return AccountInfo(address=address, owner=ROUTER, lamports=1, data=data)

    def get_account_bytes(self, address):
        if address not in self.accounts:
            raise AccountNotFound(address)
        return self.accounts[address]

    def fetch(self, address):
        return self.accounts.get(address)

    def get_program_accounts(self, program_id, data_size=None, memcmp=()):
        self.queries.append((program_id, data_size, list(memcmp)))
        return list(self.program_accounts)

    def get_minimum_balance_for_rent_exemption(self, size):
        return 1_000 + size

    def get_latest_blockhash(self):
        return make_key(77)

    def send_transaction(self, raw):
        self.sent.append(raw)
        return "sig"


@pytest.fixture
def config():
    return ProtocolConfig(router_program_id=ROUTER, oracle_program_id=ORACLE_PROGRAM)


def test_deposit_creates_missing_portfolio(config):
    client = PercolatorClient(config, FakeRpc())
    instructions = client.build_deposit(make_key(7), 100)
    assert [ix.program_id for ix in instructions] == [SYSTEM_PROGRAM_ID, ROUTER, ROUTER]
    assert [ix.data[0] for ix in instructions[1:]] == [1, 3]


def test_deposit_with_existing_portfolio(config):
    user = make_key(7)
    rpc = FakeRpc({portfolio_address(user, ROUTER): b"\x00"})
    instructions = PercolatorClient(config, rpc).build_deposit(user, 100)
    assert len(instructions) == 1
    assert PercolatorClient(config, rpc).portfolio_exists(user)


def test_fetch_oracle(config):
    rpc = FakeRpc({make_key(9): oracle_blob(price=5), make_key(10): b"\x00" * 128})
    client = PercolatorClient(config, rpc)
    assert client.fetch_oracle(make_key(9)).price == 5
    with pytest.raises(ClientError):
        client.fetch_oracle(make_key(10))


def test_fetch_oracles_filters_and_drops(config):
    rpc = FakeRpc(program_accounts=[(make_key(9), oracle_blob()), (make_key(10), b"\x01" * 128)])
    batch = PercolatorClient(config, rpc).fetch_oracles()
    assert [address for address, _ in batch.records] == [make_key(9)]
    assert batch.dropped == 1
    assert rpc.queries == [(ORACLE_PROGRAM, 128, [(0, schemas.ORACLE_MAGIC)])]


def test_committee_permission(config):
    committee = make_key(50)
    rpc = FakeRpc({committee: multisig_blob([make_key(1), make_key(2)], threshold=2)})
    client = PercolatorClient(config, rpc)
    assert client.check_permission(committee, make_key(2)).granted
    assert not client.check_permission(committee, make_key(3)).granted


def test_has_permission_prefers_configured_governance(config):
    committee = make_key(50)
    rpc = FakeRpc({committee: multisig_blob([make_key(1)], threshold=1)})
    client = PercolatorClient(config.with_overrides(governance=committee), rpc)
    assert client.has_permission(make_key(1), Permission.GOVERNANCE).granted


def test_has_permission_reads_registry(config):
    registry = derive_registry(ROUTER).address
    rpc = FakeRpc({registry: registry_blob(governance=make_key(30), insurance_authority=make_key(31))})
    client = PercolatorClient(config, rpc)
    assert client.has_permission(make_key(31), Permission.INSURANCE).granted
    assert not client.has_permission(make_key(31), Permission.GOVERNANCE).granted


def test_pending_proposals_query(config):
    committee, wallet = make_key(50), make_key(1)
    rpc = FakeRpc(
        program_accounts=[
            (make_key(60), proposal_blob(committee, 2)),
            (make_key(61), proposal_blob(committee, 1, approved=[wallet])),
        ]
    )
    pending = PercolatorClient(config, rpc).pending_proposals(committee, wallet)
    assert [p.transaction_index for p in pending] == [2]
    program, _, memcmp = rpc.queries[0]
    assert program == SQUADS_V4_PROGRAM_ID
    assert memcmp[1] == (8, pubkey_bytes(committee))


def test_send_signs_with_payer(config):
    payer = Keypair.from_seed(bytes([3]) * 32)
    rpc = FakeRpc()
    client = PercolatorClient(config, rpc)
    signature = client.send([client.build_withdraw(payer.pubkey, 1)], payer)
    assert signature == "sig"
    raw = rpc.sent[0]
    assert raw[0] == 1
    payer.private_key.public_key().verify(raw[1:65], raw[65:])
