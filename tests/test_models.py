from datetime import datetime, timezone

import pytest

from fipsbuild.errors import ConfigurationError
from fipsbuild.models import (
    NOT_VALIDATED_NOTICE,
    ConfigurationRequest,
    Credential,
    MarkerRecord,
    Method,
    VerificationResult,
)


def test_request_from_inputs_only_accepts_literal_true() -> None:
    assert ConfigurationRequest.from_inputs("true").enabled is True
    assert ConfigurationRequest.from_inputs("TRUE").enabled is False
    assert ConfigurationRequest.from_inputs("1").enabled is False
    assert ConfigurationRequest.from_inputs().enabled is False


def test_request_splits_package_list_on_whitespace() -> None:
    request = ConfigurationRequest.from_inputs("true", "ubuntu-pro", "  openssl   libssl3\nlibgcrypt20 ")

    assert request.extra_packages == ("openssl", "libssl3", "libgcrypt20")
    assert request.method is Method.UBUNTU_PRO


def test_unknown_method_lists_supported_methods() -> None:
    request = ConfigurationRequest.from_inputs("true", "bogus")

    with pytest.raises(ConfigurationError) as excinfo:
        request.method

    assert "Unknown FIPS method: bogus" in str(excinfo.value)
    assert "source" in excinfo.value.hint
    assert "ubuntu-pro" in excinfo.value.hint


def test_credential_repr_hides_value_and_clear_drops_it() -> None:
    credential = Credential(value="C1234secret", source="environment")

    assert "C1234secret" not in repr(credential)
    assert credential.present
    credential.clear()
    assert credential.value == ""
    assert not credential.present


def test_source_marker_renders_openssl_fields_and_notice() -> None:
    record = MarkerRecord(
        enabled=True,
        method=Method.SOURCE,
        configured_at=datetime(2026, 10, 19, 8, 30, 5, tzinfo=timezone.utc),
        openssl_version="3.0.13",
        config_path="/usr/local/ssl/openssl-fips.cnf",
        binary_path="/usr/local/bin/openssl",
    )

    text = record.render()

    assert text.startswith(
        "FIPS_ENABLED=true\n"
        "FIPS_METHOD=source\n"
        "FIPS_CONFIGURED_AT=2026-10-19T08:30:05Z\n"
        "OPENSSL_VERSION=3.0.13\n"
        "OPENSSL_FIPS_CONF=/usr/local/ssl/openssl-fips.cnf\n"
        "OPENSSL_FIPS_BIN=/usr/local/bin/openssl\n"
    )
    assert text.endswith(NOT_VALIDATED_NOTICE)


def test_vendor_marker_has_no_source_fields() -> None:
    record = MarkerRecord.now(method=Method.UBUNTU_PRO)

    fields = record.fields()

    assert set(fields) == {"FIPS_ENABLED", "FIPS_METHOD", "FIPS_CONFIGURED_AT"}
    assert fields["FIPS_METHOD"] == "ubuntu-pro"
    assert "NOT NIST" not in record.render()


def test_verification_inconclusive_is_not_a_failure() -> None:
    result = VerificationResult(
        provider_active=True,
        algorithm_checks={"aes-256-gcm": "inconclusive", "sha256": "pass"},
    )
    assert result.failed is False

    failed = VerificationResult(provider_active=True, algorithm_checks={"sha256": "fail"})
    assert failed.failed is True
    assert failed.failed_checks == ("sha256",)
    assert VerificationResult(provider_active=False).failed is True
