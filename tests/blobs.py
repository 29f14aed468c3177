"""Raw account images shared by the decoder / resolver / client tests."""

import struct

from percolator import schemas
from percolator.codec import encode
from percolator.keys import b58encode, pubkey_bytes


def make_key(n):
    return b58encode(bytes([n]) * 32)


def oracle_blob(price=65_000_000_000, timestamp=1_700_000_000, confidence=0, instrument=None):
    return encode(
        schemas.PRICE_ORACLE,
        {
            "bump": 255,
            "authority": make_key(1),
            "instrument": instrument or make_key(2),
            "price": price,
            "timestamp": timestamp,
            "confidence": confidence,
        },
    )


def registry_blob(governance, insurance_authority, router_id=None):
    return encode(
        schemas.REGISTRY_PARAMS,
        {
            "bump": 250,
            "router_id": router_id or make_key(200),
            "governance": governance,
            "insurance_authority": insurance_authority,
            "imr_bps": 500,
            "mmr_bps": 250,
            "liquidation_band_bps": 100,
            "max_oracle_staleness_secs": 60,
            "slab_count": 2,
        },
    )


def multisig_blob(members, threshold, rent_collector=None, permissions=7):
    head = encode(
        schemas.SQUADS_MULTISIG_HEAD,
        {
            "create_key": make_key(90),
            "config_authority": bytes(32),
            "threshold": threshold,
            "time_lock": 0,
            "transaction_index": 3,
            "stale_transaction_index": 0,
        },
    )
    tail = bytearray()
    if rent_collector is None:
        tail.append(0)
    else:
        tail.append(1)
        tail += pubkey_bytes(rent_collector)
    tail.append(254)
    tail += struct.pack("<I", len(members))
    for member in members:
        tail += pubkey_bytes(member) + bytes([permissions])
    return head + bytes(tail)


def proposal_blob(multisig, index, status=1, timestamp=1_700_000_000, approved=(), rejected=(), cancelled=()):
    out = bytearray(encode(schemas.SQUADS_PROPOSAL_HEAD, {"multisig": multisig, "transaction_index": index}))
    out.append(status)
    if status != 4:
        out += struct.pack("<q", timestamp)
    out.append(253)
    for group in (approved, rejected, cancelled):
        out += struct.pack("<I", len(group))
        for key in group:
            out += pubkey_bytes(key)
    return bytes(out)
