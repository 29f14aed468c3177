import json

import pytest
from blobs import make_key

from percolator.config import ProtocolConfig
from percolator.constants import SYSTEM_PROGRAM_ID
from percolator.errors import ClientError
from percolator.instructions import router
from percolator.pda import portfolio_address
from percolator.transaction import (
    Keypair,
    Transaction,
    compile_message,
    encode_shortvec,
    read_shortvec,
)

CONFIG = ProtocolConfig(router_program_id=make_key(200))
BLOCKHASH = make_key(77)


@pytest.mark.parametrize(
    "value, raw",
    [(0, b"\x00"), (127, b"\x7f"), (128, b"\x80\x01"), (16383, b"\xff\x7f"), (16384, b"\x80\x80\x01")],
)
def test_shortvec(value, raw):
    assert encode_shortvec(value) == raw
    assert read_shortvec(raw, 0) == (value, len(raw))


def test_keypair_from_seed_is_stable():
    first = Keypair.from_seed(bytes(range(32)))
    second = Keypair.from_seed(bytes(range(32)))
    assert first.pubkey == second.pubkey
    assert Keypair.from_secret_key(first.secret_key).pubkey == first.pubkey


def test_keypair_secret_key_must_match():
    keypair = Keypair.from_seed(bytes(32))
    forged = keypair.secret_key[:32] + bytes(32)
    with pytest.raises(ValueError):
        Keypair.from_secret_key(forged)


def test_keypair_json_file(tmp_path):
    keypair = Keypair.generate()
    path = tmp_path / "id.json"
    path.write_text(json.dumps(list(keypair.secret_key)))
    assert Keypair.from_json_file(path).pubkey == keypair.pubkey


def test_compile_orders_accounts():
    payer = Keypair.from_seed(bytes([1]) * 32)
    ix = router.deposit(CONFIG, payer.pubkey, 10)
    message = compile_message([ix], payer.pubkey, BLOCKHASH)
    portfolio = portfolio_address(payer.pubkey, CONFIG.router_program_id)
    assert message.account_keys == (payer.pubkey, portfolio, SYSTEM_PROGRAM_ID, CONFIG.router_program_id)
    assert (
        message.num_required_signatures,
        message.num_readonly_signed,
        message.num_readonly_unsigned,
    ) == (1, 0, 2)
    assert message.instructions[0].program_index == 3
    assert message.instructions[0].account_indexes == (1, 0, 2)
    assert message.is_writable(1) and not message.is_writable(2)


def test_compile_dedupes_accounts():
    payer = Keypair.from_seed(bytes([1]) * 32)
    ixs = [router.deposit(CONFIG, payer.pubkey, 1), router.withdraw(CONFIG, payer.pubkey, 1)]
    assert len(compile_message(ixs, payer.pubkey, BLOCKHASH).account_keys) == 4


def test_readonly_signer_counted():
    user = make_key(61)
    ix = router.execute_cross_slab(CONFIG, user, make_key(8), make_key(9), [router.OrderSplit(0, 1, 1)])
    message = compile_message([ix], make_key(60), BLOCKHASH)
    assert message.signers == (make_key(60), user)
    assert message.num_readonly_signed == 1


def test_sign_and_serialize():
    payer = Keypair.from_seed(bytes([1]) * 32)
    tx = Transaction.build([router.deposit(CONFIG, payer.pubkey, 10)], payer.pubkey, BLOCKHASH)
    raw = tx.sign(payer).serialize()
    message = tx.message.serialize()
    assert raw[0] == 1
    assert raw[65:] == message
    payer.private_key.public_key().verify(raw[1:65], message)


def test_unsigned_or_foreign_signer_rejected():
    payer = Keypair.from_seed(bytes([1]) * 32)
    tx = Transaction.build([router.deposit(CONFIG, payer.pubkey, 10)], payer.pubkey, BLOCKHASH)
    with pytest.raises(ClientError):
        tx.serialize()
    with pytest.raises(ClientError):
        tx.sign(Keypair.generate())
