from weaverctl.modules.software.errors import (
    ChecksumError,
    CleanupError,
    ConfigLoadError,
    DownloadError,
    PlatformNotFoundError,
    SoftwareError,
    SoftwareNotFoundError,
    UnsupportedAlgorithmError,
    VersionNotFoundError,
    exit_code_for,
    safe_error_details,
)


def test_errors_share_base_class():
    for err in (SoftwareNotFoundError("helm"), CleanupError("/tmp/x"), ConfigLoadError()):
        assert isinstance(err, SoftwareError)


def test_message_includes_cause():
    cause = OSError("disk full")
    err = VersionNotFoundError("kubectl", "9.9.9", cause)
    assert str(err) == "version '9.9.9' not found for software 'kubectl': disk full"
    assert err.__cause__ is cause


def test_properties_drop_unset_values():
    err = DownloadError("https://dl.k8s.io/x", status_code=404)
    assert err.status_code == 404
    assert err.properties == {"url": "https://dl.k8s.io/x", "status_code": 404}
    assert "(HTTP 404)" in str(err)

    assert DownloadError("https://dl.k8s.io/x").status_code is None


def test_unsupported_algorithm_is_a_checksum_error():
    err = UnsupportedAlgorithmError("/tmp/file", "sha1", "abc")
    assert isinstance(err, ChecksumError)
    assert str(err) == "unsupported checksum algorithm 'sha1' for file '/tmp/file'"


def test_safe_error_details_order():
    err = PlatformNotFoundError("helm", "3.18.6", "darwin", "arm64")
    assert safe_error_details(err) == ["helm", "3.18.6", "darwin", "arm64"]
    assert safe_error_details(None) == []


def test_exit_codes():
    assert exit_code_for(ConfigLoadError()) == 10
    assert exit_code_for(SoftwareNotFoundError("x")) == 11
    assert exit_code_for(ChecksumError("/f", "sha256", "a", "b")) == 22
    assert exit_code_for(UnsupportedAlgorithmError("/f", "sha1", "a")) == 22
    assert exit_code_for(CleanupError("/tmp")) == 33
    assert exit_code_for(SoftwareError("generic")) == 1
    assert exit_code_for(ValueError("not ours")) == 1


def test_with_context_keeps_existing_properties():
    cause = ConnectionError("reset")
    err = DownloadError("https://dl.k8s.io/kubectl", cause, status_code=500)

    assert err.with_context(software_name="kubectl", version="1.33.4", url="other", os=None) is err

    assert err.properties == {
        "url": "https://dl.k8s.io/kubectl",
        "status_code": 500,
        "software_name": "kubectl",
        "version": "1.33.4",
    }
    assert err.cause is cause
    assert safe_error_details(err) == ["kubectl", "1.33.4", "https://dl.k8s.io/kubectl", "500"]
