import struct
from decimal import Decimal

import pytest
from blobs import make_key, multisig_blob, oracle_blob, proposal_blob, registry_blob

from percolator.accounts import (
    OracleStatus,
    PriceOracle,
    ProposalStatus,
    decode_batch,
    decode_committee,
    decode_oracle,
    decode_proposal,
    decode_registry,
    oracle_status,
)
from percolator.codec import DecodeError, Invalid


def test_decode_oracle():
    record = decode_oracle(oracle_blob(price=65_000_500_000, confidence=1_500_000))
    assert isinstance(record, PriceOracle)
    assert record.instrument == make_key(2)
    assert record.price_ui == Decimal("65000.5")
    assert record.confidence_ui == Decimal("1.5")


def test_decode_oracle_never_raises_on_garbage():
    assert decode_oracle(b"").reason == DecodeError.TOO_SHORT
    assert decode_oracle(b"\xff" * 128).reason == DecodeError.BAD_MAGIC


def test_decode_registry():
    record = decode_registry(registry_blob(make_key(30), make_key(31)))
    assert record.governance == make_key(30)
    assert record.insurance_authority == make_key(31)
    assert (record.imr_bps, record.mmr_bps, record.slab_count) == (500, 250, 2)


def test_decode_committee():
    members = [make_key(1), make_key(2), make_key(3)]
    record = decode_committee(multisig_blob(members, threshold=2, rent_collector=make_key(4)))
    assert record.member_keys == tuple(members)
    assert record.threshold == 2
    assert record.rent_collector == make_key(4)
    assert record.bump == 254
    assert record.config_authority == "1" * 32
    assert record.members[0].can_vote and record.members[0].can_execute


@pytest.mark.parametrize("threshold", [0, 4, 65535])
def test_committee_threshold_is_not_range_checked(threshold):
    record = decode_committee(multisig_blob([make_key(1), make_key(2), make_key(3)], threshold))
    assert record.threshold == threshold


def test_committee_without_members():
    assert decode_committee(multisig_blob([], 1)).reason == DecodeError.FIELD_OUT_OF_RANGE


def test_committee_truncated_member_vector():
    blob = multisig_blob([make_key(1), make_key(2)], 1)
    assert decode_committee(blob[:-5]).reason == DecodeError.TOO_SHORT


def test_committee_vector_length_is_bounded():
    blob = bytearray(multisig_blob([make_key(1)], 1))
    # members length sits after the head, the None tag and the bump
    struct.pack_into("<I", blob, 94 + 2, 0xFFFFFFFF)
    assert decode_committee(bytes(blob)).reason == DecodeError.TOO_SHORT


def test_committee_bad_option_tag():
    blob = bytearray(multisig_blob([make_key(1)], 1))
    blob[94] = 2
    assert decode_committee(bytes(blob)).reason == DecodeError.FIELD_OUT_OF_RANGE


def test_committee_permission_mask_bounds():
    blob = multisig_blob([make_key(1)], 1, permissions=8)
    assert decode_committee(blob).reason == DecodeError.FIELD_OUT_OF_RANGE


def test_oracle_is_not_a_committee():
    assert decode_committee(oracle_blob()).reason == DecodeError.BAD_MAGIC


def test_decode_proposal():
    ms = make_key(50)
    record = decode_proposal(proposal_blob(ms, 7, approved=[make_key(1)], rejected=[make_key(2)]))
    assert record.multisig == ms
    assert record.transaction_index == 7
    assert record.status == ProposalStatus.ACTIVE
    assert record.status_timestamp == 1_700_000_000
    assert record.approved == (make_key(1),)
    assert record.rejected == (make_key(2),)
    assert record.cancelled == ()


def test_executing_proposal_has_no_timestamp():
    record = decode_proposal(proposal_blob(make_key(50), 1, status=4))
    assert record.status == ProposalStatus.EXECUTING
    assert record.status_timestamp is None


def test_unknown_proposal_status():
    assert decode_proposal(proposal_blob(make_key(50), 1, status=9)).reason == DecodeError.FIELD_OUT_OF_RANGE


def test_batch_isolates_bad_records():
    good_a = oracle_blob(price=1)
    broken = bytearray(oracle_blob(price=2))
    broken[3] ^= 0x55
    good_c = oracle_blob(price=3)
    batch = decode_batch(
        [("a", good_a), ("b", bytes(broken)), ("c", good_c)],
        decode_oracle,
    )
    assert [address for address, _ in batch.records] == ["a", "c"]
    assert [record.price for _, record in batch.records] == [1, 3]
    assert batch.dropped == 1
    assert batch.errors[0][0] == "b"
    assert batch.errors[0][1].reason == DecodeError.BAD_MAGIC


def test_batch_missing_and_wrong_size():
    batch = decode_batch(
        [("gone", None), ("big", oracle_blob() + b"\x00"), ("ok", oracle_blob())],
        decode_oracle,
        expected_size=128,
    )
    assert len(batch) == 1
    assert [address for address, _ in batch.errors] == ["gone", "big"]
    assert all(isinstance(error, Invalid) for _, error in batch.errors)


@pytest.mark.parametrize(
    "age, status",
    [
        (0, OracleStatus.HEALTHY),
        (30, OracleStatus.HEALTHY),
        (31, OracleStatus.WARNING),
        (60, OracleStatus.WARNING),
        (61, OracleStatus.STALE),
    ],
)
def test_oracle_status(age, status):
    record = decode_oracle(oracle_blob(timestamp=1_000))
    health = oracle_status(record, now=1_000 + age)
    assert health.status == status
    assert health.age_secs == age


def test_oracle_status_future_timestamp_is_fresh():
    record = decode_oracle(oracle_blob(timestamp=1_000))
    assert oracle_status(record, now=900).status == OracleStatus.HEALTHY
