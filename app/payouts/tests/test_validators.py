"""
Tests for payout method field validation.
"""

from decimal import Decimal

import pytest

from payouts.exceptions import InvalidAddressError, PayoutErrorCode
from payouts.validators import (
    aba_checksum_is_valid,
    email_errors,
    get_network_spec,
    is_valid_wallet_address,
    normalize_digits,
    validate_bank_details,
    validate_wallet_address,
)

EVM = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
BTC_LEGACY = "1BoatSLRHtKNngkdXEeobR76b53LETtpyT"
BTC_BECH32 = "bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq"
TRON = "TLa2f6VPqDgRE67v1736s7bJ8Ray5wYjU7"


class TestWalletAddresses:
    @pytest.mark.parametrize("network", ["ethereum", "polygon", "bsc"])
    def test_evm_networks_accept_hex_address(self, network):
        assert validate_wallet_address(EVM, network) == EVM

    @pytest.mark.parametrize("address", [BTC_LEGACY, BTC_BECH32])
    def test_bitcoin_address_formats(self, address):
        assert is_valid_wallet_address(address, "bitcoin")

    def test_tron_address(self):
        assert is_valid_wallet_address(TRON, "tron")

    @pytest.mark.parametrize("swapped", ["0", "l", "O", "I"])
    def test_tron_rejects_non_base58_characters(self, swapped):
        assert not is_valid_wallet_address(TRON[:-1] + swapped, "tron")

    def test_surrounding_whitespace_is_stripped(self):
        assert validate_wallet_address(f"  {EVM}\n", "ethereum") == EVM

    def test_network_name_is_case_insensitive(self):
        assert validate_wallet_address(EVM, " Polygon ") == EVM

    def test_short_evm_address_rejected(self):
        with pytest.raises(InvalidAddressError) as exc_info:
            validate_wallet_address("0x1234", "ethereum")

        assert exc_info.value.error_code == PayoutErrorCode.INVALID_ADDRESS
        assert "wallet_address" in exc_info.value.details["errors"]

    def test_evm_address_on_bitcoin_rejected(self):
        assert not is_valid_wallet_address(EVM, "bitcoin")

    def test_unsupported_network_rejected(self):
        with pytest.raises(InvalidAddressError) as exc_info:
            validate_wallet_address(EVM, "solana")

        assert "network" in exc_info.value.details["errors"]

    def test_network_specs(self):
        polygon = get_network_spec("polygon")

        assert polygon.symbol == "MATIC"
        assert polygon.estimated_fee_usd == Decimal("0.10")
        assert get_network_spec("dogecoin") is None


class TestRoutingChecksum:
    @pytest.mark.parametrize("routing_number", ["110000000", "021000021"])
    def test_valid_checksums(self, routing_number):
        assert aba_checksum_is_valid(routing_number)

    @pytest.mark.parametrize("routing_number", ["123456789", "11000000", "11000000a"])
    def test_invalid_checksums(self, routing_number):
        assert not aba_checksum_is_valid(routing_number)


class TestBankDetails:
    def test_valid_us_details(self):
        assert validate_bank_details("110000000", "000123456789", "Jenny Rosen", "US") == {}

    def test_separators_are_ignored(self):
        assert validate_bank_details("110-000-000", "0001 2345 6789", "Jenny Rosen") == {}
        assert normalize_digits("110-000 000") == "110000000"

    def test_bad_us_checksum(self):
        errors = validate_bank_details("123456789", "000123456789", "Jenny Rosen", "US")

        assert errors == {"routing_number": ["Invalid routing number"]}

    def test_us_routing_must_be_nine_digits(self):
        errors = validate_bank_details("12345", "000123456789", "Jenny Rosen", "US")

        assert errors["routing_number"] == ["US routing number must be exactly 9 digits"]

    def test_canadian_transit_accepts_eight_digits(self):
        assert validate_bank_details("00012345", "1234567", "Jenny Rosen", "CA") == {}

    def test_canadian_transit_too_short(self):
        errors = validate_bank_details("1234", "1234567", "Jenny Rosen", "ca")

        assert "routing_number" in errors

    def test_account_number_length(self):
        errors = validate_bank_details("110000000", "123", "Jenny Rosen")

        assert errors["account_number"] == ["Account number must be 4 to 17 digits"]

    def test_holder_name_required(self):
        errors = validate_bank_details("110000000", "000123456789", " ")

        assert errors["holder_name"] == ["Account holder name is required"]

    def test_unsupported_country(self):
        errors = validate_bank_details("110000000", "000123456789", "Jenny Rosen", "GB")

        assert list(errors) == ["country"]


class TestEmail:
    def test_valid_email(self):
        assert email_errors("creator@example.com") == []

    def test_invalid_email(self):
        assert email_errors("not-an-email") == ["Enter a valid email address."]
