import datetime as dt
import json

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from beaconlock.chain import (
    ChainInfo,
    ChainVerification,
    compute_chain_hash,
    parse_duration,
    parse_rfc3339,
    round_time,
)
from beaconlock.constants import SCHEME_CHAINED
from beaconlock.errors import ChainHashMismatch, DecodingError, InvalidRound, UnknownScheme


# ---------- chain hash ----------


@pytest.mark.parametrize("name", ["mainnet", "testnet-unchained-3s", "testnet-g", "fastnet", "quicknet"])
def test_published_chain_hashes_recompute(chain_dicts, name):
    info = ChainInfo.from_dict(chain_dicts[name])
    assert info.compute_hash() == info.hash
    assert info.hash_hex == chain_dicts[name]["hash"]


def test_default_scheme_and_beacon_id_are_not_hashed(chains):
    m = chains["mainnet"]
    bare = compute_chain_hash(
        public_key=m.public_key,
        period=m.period,
        genesis_time=m.genesis_time,
        group_hash=m.group_hash,
    )
    assert bare == m.hash


def test_scheme_id_is_not_hashed(chain_dicts):
    t = chain_dicts["testnet-unchained-3s"]
    relabelled = ChainInfo.from_dict(dict(t, schemeID=SCHEME_CHAINED))
    assert relabelled.hash_hex == t["hash"]
    assert relabelled.scheme_id == SCHEME_CHAINED

    named = compute_chain_hash(
        public_key=bytes.fromhex(t["public_key"]),
        period=t["period"],
        genesis_time=t["genesis_time"],
        group_hash=bytes.fromhex(t["groupHash"]),
        beacon_id=t["metadata"]["beaconID"],
    )
    assert named.hex() == t["hash"]


def test_non_default_beacon_id_is_hashed(chain_dicts):
    d = dict(chain_dicts["testnet-unchained-3s"], metadata={"beaconID": "default"})
    with pytest.raises(ChainHashMismatch):
        ChainInfo.from_dict(d)


@pytest.mark.parametrize(
    "field,value",
    [
        ("period", 31),
        ("genesis_time", 1595431051),
        ("groupHash", "00" * 32),
        ("metadata", {"beaconID": "fastnet"}),
    ],
)
def test_tampered_chain_info_is_rejected(chain_dicts, field, value):
    d = dict(chain_dicts["mainnet"])
    d[field] = value
    with pytest.raises(ChainHashMismatch) as ei:
        ChainInfo.from_dict(d)
    assert ei.value.security_relevant
    assert ei.value.expected_hex == d["hash"]


def test_unverified_load_skips_hash_check(chain_dicts):
    d = dict(chain_dicts["mainnet"], period=31)
    info = ChainInfo.from_dict(d, verify=False)
    with pytest.raises(ChainHashMismatch):
        info.verify_hash()


def test_unknown_scheme_surfaces_on_use(chain_dicts):
    d = dict(chain_dicts["mainnet"], schemeID="pedersen-bls-sideways")
    info = ChainInfo.from_dict(d, verify=False)
    with pytest.raises(UnknownScheme):
        info.scheme


def test_missing_and_malformed_fields(chain_dicts):
    d = dict(chain_dicts["mainnet"])
    del d["period"]
    with pytest.raises(DecodingError):
        ChainInfo.from_dict(d)
    with pytest.raises(DecodingError):
        ChainInfo.from_dict(dict(chain_dicts["mainnet"], period=0), verify=False)
    with pytest.raises(DecodingError):
        ChainInfo.from_dict(dict(chain_dicts["mainnet"], hash="abcd"))
    with pytest.raises(DecodingError):
        ChainInfo.from_json("{not json")


def test_json_roundtrip_keeps_hash(chains):
    for info in chains.values():
        again = ChainInfo.from_json(info.to_json())
        assert again == info


def test_schemeless_info_defaults_to_chained(chain_dicts):
    d = dict(chain_dicts["mainnet"])
    del d["schemeID"]
    del d["metadata"]
    info = ChainInfo.from_dict(d)
    assert info.scheme_id == SCHEME_CHAINED
    assert info.beacon_id == "default"


# ---------- pinning ----------


def test_chain_verification(chains):
    mainnet, testnet = chains["mainnet"], chains["testnet-unchained-3s"]

    assert ChainVerification().matches(mainnet)
    assert ChainVerification(hash=mainnet.hash, public_key=mainnet.public_key).matches(mainnet)
    assert ChainVerification.from_hex(hash=mainnet.hash_hex).matches(mainnet)
    assert ChainVerification(public_key=mainnet.public_key).matches(mainnet)

    assert not ChainVerification(hash=mainnet.hash, public_key=testnet.public_key).matches(mainnet)
    assert not ChainVerification(hash=testnet.hash, public_key=mainnet.public_key).matches(mainnet)
    with pytest.raises(ChainHashMismatch):
        ChainVerification(hash=testnet.hash).check(mainnet)


# ---------- rounds ----------


def test_round_schedule(chains):
    info = chains["testnet-unchained-3s"]
    g = info.genesis_time
    assert info.round_at(g - 1) == 0
    assert info.round_at(g) == 1
    assert info.round_at(g + 2.9) == 1
    assert info.round_at(g + 3) == 2
    assert info.time_of_round(1) == g
    assert info.time_of_round(1000000) == g + 999999 * 3
    assert info.round_at(dt.datetime.fromtimestamp(g + 30, tz=dt.timezone.utc)) == 11


def test_round_zero_has_no_time(chains):
    with pytest.raises(InvalidRound):
        chains["mainnet"].time_of_round(0)


@settings(max_examples=200, deadline=None)
@given(
    period=st.integers(min_value=1, max_value=3600),
    genesis=st.integers(min_value=0, max_value=2_000_000_000),
    rnd=st.integers(min_value=1, max_value=10**9),
)
def test_round_time_bijection(period, genesis, rnd):
    info = ChainInfo(
        public_key=b"",
        period=period,
        genesis_time=genesis,
        hash=b"\x00" * 32,
        group_hash=b"",
    )
    t = info.time_of_round(rnd)
    assert info.round_at(t) == rnd
    assert info.round_at(t + period - 1) == rnd
    assert info.round_at(t - 1) == rnd - 1


# ---------- round specs ----------


def test_parse_duration():
    assert parse_duration("30s") == dt.timedelta(seconds=30)
    assert parse_duration("2h30m") == dt.timedelta(hours=2, minutes=30)
    assert parse_duration("1d") == dt.timedelta(days=1)
    for bad in ("", "30", "5y", "m5", "-3s"):
        with pytest.raises(DecodingError):
            parse_duration(bad)


def test_parse_rfc3339():
    assert parse_rfc3339("2022-05-04T15:11:39Z") == dt.datetime(2022, 5, 4, 15, 11, 39, tzinfo=dt.timezone.utc)
    with pytest.raises(DecodingError):
        parse_rfc3339("2022-05-04T15:11:39")
    with pytest.raises(DecodingError):
        parse_rfc3339("yesterday")


def test_round_time_from_number(chains):
    info = chains["testnet-unchained-3s"]
    now = info.genesis_time + 3000
    rt = round_time(info, "1", now=now)
    assert rt.round == 1
    assert int(rt.absolute.timestamp()) == info.genesis_time
    assert rt.relative.total_seconds() == -3000
    assert rt.is_past
    assert round_time(info, 1, now=now) == rt


def test_round_time_from_duration(chains):
    info = chains["testnet-unchained-3s"]
    now = info.genesis_time + 3000
    rt = round_time(info, "30s", now=now)
    assert rt.round == info.round_at(now + 30)
    assert rt.absolute.timestamp() == info.time_of_round(rt.round)
    assert not rt.is_past


def test_round_time_from_rfc3339_is_inverse_of_absolute(chains):
    info = chains["testnet-unchained-3s"]
    first = round_time(info, "1", now=info.genesis_time + 10)
    again = round_time(info, first.absolute.isoformat(), now=info.genesis_time + 10)
    assert again.round == 1
    assert again.absolute == first.absolute


def test_round_time_before_genesis(chains):
    info = chains["mainnet"]
    with pytest.raises(InvalidRound):
        round_time(info, "2000-01-01T00:00:00Z")


def test_round_time_to_dict(chains):
    info = chains["mainnet"]
    d = round_time(info, "10", now=info.genesis_time).to_dict()
    assert d["round"] == 10
    assert d["relative_seconds"] == 9 * 30
    json.dumps(d)
