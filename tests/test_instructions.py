import struct

import pytest

from percolator.codec import DecodeError, Invalid, pack_context_id
from percolator.config import ProtocolConfig
from percolator.constants import (
    NATIVE_MINT,
    PORTFOLIO_ACCOUNT_SIZE,
    SYSTEM_PROGRAM_ID,
    MakerClass,
    RouterInstruction,
    Side,
    TimeInForce,
)
from percolator.errors import ClientError, FieldOutOfRange, ValueTooLargeForWidth
from percolator.instructions import oracle, router
from percolator.keys import pubkey_bytes
from percolator.pda import (
    Seed,
    derive_authority,
    derive_lp_seat,
    derive_receipt,
    derive_registry,
    derive_vault,
    portfolio_address,
)


def roles(ix):
    return [(meta.is_signer, meta.is_writable) for meta in ix.accounts]


def test_deposit_layout(config, key, router_program):
    user = key(7)
    ix = router.deposit(config, user, 1_000_000_000)
    assert ix.program_id == router_program
    assert ix.discriminator == 3
    assert ix.data == bytes([3]) + (1_000_000_000).to_bytes(8, "little")
    assert [meta.pubkey for meta in ix.accounts] == [
        portfolio_address(user, router_program),
        user,
        SYSTEM_PROGRAM_ID,
    ]
    assert roles(ix) == [(False, True), (True, True), (False, False)]


def test_withdraw_discriminator(config, key):
    assert router.withdraw(config, key(7), 5).data[0] == 4


def test_builders_are_deterministic(config, key):
    assert router.deposit(config, key(7), 5) == router.deposit(config, key(7), 5)


def test_initialize_portfolio_pair(config, key, router_program):
    user = key(7)
    create_ix, init_ix = router.initialize_portfolio(config, user, rent_lamports=42)
    portfolio = portfolio_address(user, router_program)

    assert create_ix.program_id == SYSTEM_PROGRAM_ID
    assert create_ix.data[:4] == (3).to_bytes(4, "little")
    assert create_ix.data[4:36] == pubkey_bytes(user)
    assert struct.unpack_from("<Q", create_ix.data, 36)[0] == 9
    assert create_ix.data[44:53] == b"portfolio"
    assert struct.unpack_from("<QQ", create_ix.data, 53) == (42, PORTFOLIO_ACCOUNT_SIZE)
    assert create_ix.data[69:101] == pubkey_bytes(router_program)
    assert [meta.pubkey for meta in create_ix.accounts] == [user, portfolio]

    assert init_ix.data == bytes([1]) + pubkey_bytes(user)
    assert [meta.pubkey for meta in init_ix.accounts] == [portfolio, user]
    assert roles(init_ix) == [(False, True), (True, True)]


def test_execute_cross_slab(config, key, router_program):
    user, slab, oracle_key = key(7), key(8), key(9)
    splits = [
        router.OrderSplit(Side.BUY, 1_000_000, 65_000_000_000),
        router.OrderSplit(Side.SELL, 2_000_000, -1),
    ]
    before = list(splits)
    ix = router.execute_cross_slab(config, user, slab, oracle_key, splits)
    assert splits == before

    assert ix.data[:2] == bytes([5, 2])
    assert len(ix.data) == 2 + 2 * 17
    assert struct.unpack_from("<Bqq", ix.data, 2) == (0, 1_000_000, 65_000_000_000)
    assert struct.unpack_from("<Bqq", ix.data, 19) == (1, 2_000_000, -1)

    portfolio = portfolio_address(user, router_program)
    assert [meta.pubkey for meta in ix.accounts] == [
        portfolio,
        user,
        derive_vault(NATIVE_MINT, router_program).address,
        derive_registry(router_program).address,
        derive_authority(router_program).address,
        SYSTEM_PROGRAM_ID,
        oracle_key,
        slab,
        derive_receipt(portfolio, slab, router_program).address,
    ]
    assert roles(ix) == [
        (False, True),
        (True, False),
        (False, True),
        (False, True),
        (False, False),
        (False, False),
        (False, False),
        (False, True),
        (False, True),
    ]


def test_execute_cross_slab_needs_splits(config, key):
    with pytest.raises(FieldOutOfRange):
        router.execute_cross_slab(config, key(7), key(8), key(9), [])


def test_execute_cross_slab_split_count_fits_u8(config, key):
    splits = [router.OrderSplit(side=Side.BUY, qty=1, limit_px=1)] * 256
    with pytest.raises(ValueTooLargeForWidth):
        router.execute_cross_slab(config, key(7), key(8), key(9), splits)


def test_place_order_is_single_split(config, key):
    params = router.PlaceOrderParams(instrument_idx=0, side=Side.SELL, size=3, price=4)
    ix = router.place_order(config, key(7), key(8), key(9), params)
    assert ix.data == bytes([5, 1]) + struct.pack("<Bqq", 1, 3, 4)


def test_place_order_bookkeeping_fields_stay_off_the_wire(config, key):
    plain = router.PlaceOrderParams(instrument_idx=0, side=Side.BUY, size=3, price=4)
    tagged = router.PlaceOrderParams(
        instrument_idx=9,
        side=Side.BUY,
        size=3,
        price=4,
        time_in_force=TimeInForce.IOC,
        maker_class=MakerClass.DLP,
    )
    first = router.place_order(config, key(7), key(8), key(9), plain)
    second = router.place_order(config, key(7), key(8), key(9), tagged)
    assert first.data == second.data


def test_router_reserve_uses_same_context_bytes(config, key, router_program):
    user, matcher = key(7), key(8)
    ix = router.router_reserve(config, user, matcher, 500, context_id=3)
    assert len(ix.data) == 13
    assert ix.data[0] == RouterInstruction.ROUTER_RESERVE
    assert ix.data[9:13] == pack_context_id(3) == Seed.context_id(3).raw
    portfolio = portfolio_address(user, router_program)
    lp_seat = derive_lp_seat(router_program, matcher, portfolio, 3, router_program).address
    assert [meta.pubkey for meta in ix.accounts] == [portfolio, user, matcher, lp_seat, SYSTEM_PROGRAM_ID]
    assert roles(ix)[3] == (False, True)


def test_router_release(config, key):
    ix = router.router_release(config, key(7), key(8), context_id=3)
    assert ix.data == bytes([10]) + pack_context_id(3)
    assert len(ix.accounts) == 4


def test_liquidate_user(config, key, router_program):
    ix = router.liquidate_user(config, key(7), key(9))
    assert ix.data == bytes([6]) + pubkey_bytes(key(9))
    assert ix.accounts[0].pubkey == portfolio_address(key(7), router_program)
    assert ix.accounts[2].pubkey == portfolio_address(key(9), router_program)
    assert roles(ix) == [(False, True), (True, False), (False, True), (False, False)]


def test_update_risk_params(config, key, router_program):
    params = router.RiskParams(imr_bps=500, mmr_bps=250, liquidation_band_bps=100, max_oracle_staleness_secs=60)
    ix = router.update_risk_params(config, key(11), params)
    assert ix.data == bytes([15]) + struct.pack("<QQQq", 500, 250, 100, 60)
    assert ix.accounts[0].pubkey == derive_registry(router_program).address
    assert roles(ix) == [(False, True), (True, False)]


def test_initialize_oracle(config, key, oracle_program):
    authority, oracle_key, instrument = key(20), key(21), key(22)
    create_ix, init_ix = oracle.initialize_oracle(
        config, authority, oracle_key, instrument, initial_price=65_000_000_000, bump=255, rent_lamports=99
    )
    assert create_ix.data[:4] == bytes(4)
    assert struct.unpack_from("<QQ", create_ix.data, 4) == (99, 128)
    assert create_ix.data[20:52] == pubkey_bytes(oracle_program)
    assert roles(create_ix) == [(True, True), (True, True)]

    assert init_ix.program_id == oracle_program
    assert init_ix.data == bytes([0]) + struct.pack("<qB", 65_000_000_000, 255)
    assert [meta.pubkey for meta in init_ix.accounts] == [oracle_key, authority, instrument]
    assert roles(init_ix) == [(False, True), (True, False), (False, False)]


def test_update_price_and_batch(config, key):
    ix = oracle.update_price(config, key(20), key(21), 100, 2)
    assert ix.data == bytes([1]) + struct.pack("<qq", 100, 2)
    batch = oracle.batch_update_price(
        config,
        key(20),
        [oracle.PriceUpdate(key(21), 1), oracle.PriceUpdate(key(22), 2, 1)],
    )
    assert [item.accounts[0].pubkey for item in batch] == [key(21), key(22)]


def test_oracle_builders_need_program(key):
    config = ProtocolConfig(router_program_id=key(200))
    with pytest.raises(ClientError):
        oracle.update_price(config, key(20), key(21), 1)


def test_decode_instruction_inverts_builders(config, key):
    op, fields = router.decode_instruction(router.deposit(config, key(7), 77).data)
    assert op == RouterInstruction.DEPOSIT
    assert fields == {"amount": 77}

    ix = router.execute_cross_slab(config, key(7), key(8), key(9), [router.OrderSplit(Side.BUY, 1, 2)])
    op, fields = router.decode_instruction(ix.data)
    assert op == RouterInstruction.EXECUTE_CROSS_SLAB
    assert fields["splits"] == [{"side": 0, "qty": 1, "limit_px": 2}]

    _, fields = router.decode_instruction(router.liquidate_user(config, key(7), key(9)).data)
    assert fields == {"target_user": key(9)}


@pytest.mark.parametrize(
    "data, reason",
    [
        (b"", DecodeError.TOO_SHORT),
        (bytes([99]), DecodeError.BAD_MAGIC),
        (bytes([0]), DecodeError.BAD_MAGIC),
        (bytes([3, 1, 2]), DecodeError.TOO_SHORT),
        (bytes([5, 0]), DecodeError.FIELD_OUT_OF_RANGE),
    ],
)
def test_decode_instruction_rejects(data, reason):
    result = router.decode_instruction(data)
    assert isinstance(result, Invalid)
    assert result.reason == reason
