import re
from unittest.mock import patch

import pytest

from pulselink.identity.codec import (
    SNR_ID_FULL_LENGTH,
    IdentityCodec,
    to_base36,
)


def test_generated_identity_matches_grammar():
    identity = IdentityCodec.generate()
    assert len(identity) == SNR_ID_FULL_LENGTH
    assert re.fullmatch(r"SNR-[A-Z0-9]{12}", identity)
    assert IdentityCodec.is_valid(identity)
    assert IdentityCodec.random_part(identity).isalpha()


def test_generation_is_mostly_unique():
    ids = [IdentityCodec.generate() for _ in range(1000)]
    assert len(set(ids)) / len(ids) >= 0.995


def test_timestamp_part_is_base36_of_clock():
    millis = 1_700_000_000_000
    with patch("pulselink.identity.codec.time.time_ns", return_value=millis * 1_000_000):
        identity = IdentityCodec.generate()
    assert IdentityCodec.timestamp_part(identity) == to_base36(millis)[-8:].rjust(8, "0")


def test_short_clock_values_are_left_padded():
    with patch("pulselink.identity.codec.time.time_ns", return_value=35 * 1_000_000):
        identity = IdentityCodec.generate()
    assert IdentityCodec.timestamp_part(identity) == "0000000Z"


def test_round_trip_address():
    codec = IdentityCodec()
    for _ in range(50):
        identity = codec.generate()
        address = codec.derive_address(identity)
        assert address == f"senior_{identity}@pulselink.app"
        assert codec.extract_identity(address) == identity


def test_custom_prefix_and_domain_round_trip():
    codec = IdentityCodec(email_prefix="v.", email_domain="care.example.org")
    identity = "SNR-0A1B2C3DWXYZ"
    assert codec.derive_address(identity) == "v.SNR-0A1B2C3DWXYZ@care.example.org"
    assert codec.extract_identity("v.SNR-0A1B2C3DWXYZ@care.example.org") == identity
    # dots in prefix and domain are literal
    assert codec.extract_identity("vXSNR-0A1B2C3DWXYZ@care.example.org") is None
    assert codec.extract_identity("v.SNR-0A1B2C3DWXYZ@careXexample.org") is None


@pytest.mark.parametrize(
    "address",
    [
        None,
        "",
        "senior_SNR-0A1B2C3DWXYZ@other.app",
        "junior_SNR-0A1B2C3DWXYZ@pulselink.app",
        "senior_SNR-0a1b2c3dwxyz@pulselink.app",
        "senior_SNR-0A1B2C3DWXY@pulselink.app",
        "senior_SNR-0A1B2C3DWXYZ1@pulselink.app",
        "senior_SNR-0A1B2C3DWXYZ@pulselink.app.evil",
        "xsenior_SNR-0A1B2C3DWXYZ@pulselink.app",
        "senior_SNR_0A1B2C3DWXYZ@pulselink.app",
    ],
)
def test_extract_rejects_non_conforming_addresses(address):
    assert IdentityCodec().extract_identity(address) is None


@pytest.mark.parametrize(
    "identity",
    ["", None, "SNR-ABC", "snr-0A1B2C3DWXYZ", "SNR-0A1B2C3DWXY!", "XYZ-0A1B2C3DWXYZ"],
)
def test_invalid_identities(identity):
    assert not IdentityCodec.is_valid(identity)
    assert IdentityCodec.timestamp_part(identity) is None
    assert IdentityCodec.random_part(identity) is None


def test_to_base36():
    assert to_base36(0) == "0"
    assert to_base36(35) == "Z"
    assert to_base36(36) == "10"
    with pytest.raises(ValueError):
        to_base36(-1)


def test_empty_domain_rejected():
    with pytest.raises(ValueError):
        IdentityCodec(email_domain="")
