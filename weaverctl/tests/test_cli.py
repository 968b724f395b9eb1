import pytest
import yaml
from typer.testing import CliRunner

from weaverctl.cli import app
from weaverctl.commands import software as software_commands

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    def write(**overrides):
        data = {"paths": {"home": str(tmp_path / "weaver"), "root_dir": str(tmp_path / "root")}}
        data.update(overrides)
        path = tmp_path / "weaver.yaml"
        path.write_text(yaml.safe_dump(data))
        return str(path)
    return write


def test_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "software" in result.output
    assert "catalog" in result.output


def test_software_commands_exist():
    result = runner.invoke(app, ["software", "--help"])
    for command in ("install", "uninstall", "download", "status", "cleanup"):
        assert command in result.output


def test_catalog_list(config_file):
    result = runner.invoke(app, ["--config", config_file(), "catalog", "list"])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert any(line.split() == ["kubectl", "1.33.4"] for line in lines)
    assert any(line.split() == ["cri-o", "1.33.4"] for line in lines)


def test_catalog_versions(config_file):
    result = runner.invoke(app, ["--config", config_file(), "catalog", "versions", "kubectl"])
    assert result.exit_code == 0
    assert result.output.splitlines() == ["1.33.4  (latest)", "1.32.8"]


def test_status_of_fresh_node(config_file):
    result = runner.invoke(app, ["--config", config_file(), "software", "status", "kubectl"])
    assert result.exit_code == 0
    assert "kubectl 1.33.4" in result.output
    assert "installed:  no" in result.output
    assert "configured: no" in result.output


def test_unknown_software_exit_code(config_file):
    result = runner.invoke(app, ["--config", config_file(), "software", "status", "nginx"])
    assert result.exit_code == 11
    assert "software 'nginx' not found" in result.output


def test_unknown_version_exit_code(config_file):
    result = runner.invoke(app, ["--config", config_file(), "software", "status", "kubectl", "--version", "9.9.9"])
    assert result.exit_code == 12


def test_broken_catalog_exit_code(config_file, tmp_path):
    catalog = tmp_path / "catalog.yaml"
    catalog.write_text("artifact: not-a-list\n")
    result = runner.invoke(app, ["--config", config_file(catalog_path=str(catalog)), "catalog", "list"])
    assert result.exit_code == 10


def test_invalid_config_exit_code(config_file):
    result = runner.invoke(app, ["--config", config_file(download={"timeout_seconds": -1}), "catalog", "list"])
    assert result.exit_code == 10


def test_install_and_uninstall(config_file, monkeypatch, make_installer, session, tar_gz, digest):
    tarball = tar_gz({"k9s": b"k9s"})
    url = "https://github.com/derailed/k9s/releases/download/v0.50.9/k9s_Linux_amd64.tar.gz"
    session.add(url, tarball)
    installer = make_installer({"artifact": [{"name": "k9s", "versions": {"0.50.9": {
        "archives": [{"name": "k9s.tar.gz", "url": url,
                      "linux": {"amd64": {"algorithm": "sha256", "checksum": digest(tarball)}}}],
        "binaries": [{"name": "k9s", "archive": "k9s.tar.gz"}],
    }}}]}, "k9s")
    monkeypatch.setattr(software_commands, "new_installer", lambda *args, **kwargs: installer)

    result = runner.invoke(app, ["--config", config_file(), "software", "install", "k9s"])
    assert result.exit_code == 0, result.output
    assert "k9s 0.50.9 is ready" in result.output
    assert installer.is_configured()

    result = runner.invoke(app, ["--config", config_file(), "software", "install", "k9s", "--keep-downloads"])
    assert result.exit_code == 0
    assert "install skipped" in result.output

    result = runner.invoke(app, ["--config", config_file(), "software", "uninstall", "k9s"])
    assert result.exit_code == 0
    assert not installer.is_installed()


def test_install_download_failure(config_file, monkeypatch, make_installer, session):
    url = "https://github.com/derailed/k9s/releases/download/v0.50.9/k9s.tar.gz"
    session.add(url, b"", status=404)
    installer = make_installer({"artifact": [{"name": "k9s", "versions": {"0.50.9": {
        "archives": [{"name": "k9s.tar.gz", "url": url,
                      "linux": {"amd64": {"algorithm": "sha256", "checksum": "0" * 64}}}],
    }}}]}, "k9s")
    monkeypatch.setattr(software_commands, "new_installer", lambda *args, **kwargs: installer)

    result = runner.invoke(app, ["--config", config_file(), "software", "install", "k9s"])
    assert result.exit_code == 20
    assert "HTTP 404" in result.output


def test_catalog_list_warns_about_bundled_digests(config_file, tmp_path):
    result = runner.invoke(app, ["--config", config_file(), "catalog", "list"])
    assert "placeholder digests" in result.output

    catalog = tmp_path / "catalog.yaml"
    catalog.write_text(yaml.safe_dump({"artifact": [{"name": "k9s", "versions": {"0.50.9": {}}}]}))
    result = runner.invoke(app, ["--config", config_file(catalog_path=str(catalog)), "catalog", "list"])
    assert result.exit_code == 0
    assert result.output.split() == ["k9s", "0.50.9"]


def test_checksum_failure_points_to_catalog_path(config_file, monkeypatch, make_installer, session):
    url = "https://github.com/derailed/k9s/releases/download/v0.50.9/k9s.tar.gz"
    session.add(url, b"release bytes")
    installer = make_installer({"artifact": [{"name": "k9s", "versions": {"0.50.9": {
        "archives": [{"name": "k9s.tar.gz", "url": url,
                      "linux": {"amd64": {"algorithm": "sha256", "checksum": "0" * 64}}}],
    }}}]}, "k9s")
    monkeypatch.setattr(software_commands, "new_installer", lambda *args, **kwargs: installer)

    result = runner.invoke(app, ["--config", config_file(), "software", "install", "k9s"])

    assert result.exit_code == 22
    assert "WEAVER_CATALOG_PATH" in result.output
