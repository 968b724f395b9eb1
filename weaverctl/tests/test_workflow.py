import os

import pytest

from weaverctl.config import DownloadConfig, PathsConfig, WeaverConfig
from weaverctl.modules.software.base import BaseInstaller
from weaverctl.modules.software.catalog import ArtifactCollection
from weaverctl.modules.software.crio import CrioInstaller
from weaverctl.modules.software.errors import FileSystemError, SoftwareNotFoundError
from weaverctl.modules.software.registry import new_installer
from weaverctl.modules.software.teleport import TeleportNodeAgentInstaller
from weaverctl.modules.software.workflow import download_software, setup_software, teardown_software

K9S_URL = "https://github.com/derailed/k9s/releases/download/v0.50.9/k9s_Linux_amd64.tar.gz"


@pytest.fixture
def config(tmp_path):
    return WeaverConfig(
        paths=PathsConfig(home=str(tmp_path / "weaver"), root_dir=str(tmp_path / "root")),
        download=DownloadConfig(timeout_seconds=60, allowed_domains=["github.com"]),
    )


@pytest.fixture
def k9s(make_installer, session, tar_gz, digest):
    tarball = tar_gz({"k9s": b"k9s", "LICENSE": b"Apache"})
    session.add(K9S_URL, tarball)
    catalog = {"artifact": [{"name": "k9s", "versions": {"0.50.9": {
        "archives": [{
            "name": "k9s_Linux_{{ ARCH }}.tar.gz",
            "url": "https://github.com/derailed/k9s/releases/download/v{{ VERSION }}/k9s_Linux_{{ ARCH }}.tar.gz",
            "linux": {"amd64": {"algorithm": "sha256", "checksum": digest(tarball)}},
        }],
        "binaries": [{"name": "k9s", "archive": "k9s_Linux_{{ ARCH }}.tar.gz"}],
    }}}]}
    return make_installer(catalog, "k9s")


def test_new_installer_picks_specialized_class(config):
    catalog = ArtifactCollection.load()

    crio = new_installer("cri-o", config=config, catalog=catalog)
    assert isinstance(crio, CrioInstaller)
    assert crio.version == "1.33.4"
    assert crio.paths.home == config.paths.home

    kubectl = new_installer("kubectl", "1.32.8", config=config, catalog=catalog)
    assert type(kubectl) is BaseInstaller
    assert kubectl.version == "1.32.8"
    assert kubectl.downloader.allowed_domains == ["github.com"]
    assert kubectl.downloader.timeout == 60


def test_new_installer_options(config):
    catalog = ArtifactCollection.load()

    teleport = new_installer("teleport", config=config, catalog=catalog, proxy_addr="proxy:443", join_token="t")
    assert isinstance(teleport, TeleportNodeAgentInstaller)
    assert teleport.proxy_addr == "proxy:443"

    crio = new_installer("cri-o", config=config, catalog=catalog, proxy_addr="proxy:443", join_token=None)
    assert isinstance(crio, CrioInstaller)

    helm = new_installer("helm", config=config, catalog=catalog, proxy_addr="proxy:443")
    assert type(helm) is BaseInstaller


def test_new_installer_unknown_software(config):
    with pytest.raises(SoftwareNotFoundError):
        new_installer("nginx", config=config, catalog=ArtifactCollection.load())


def test_setup_software(k9s, paths, session):
    result = setup_software(k9s)

    assert result.completed == ["download", "extract", "install", "configure", "cleanup"]
    assert result.skipped == []
    assert os.path.islink(os.path.join(paths.system_bin_dir, "k9s"))
    assert not os.path.exists(k9s.download_folder())


def test_setup_software_skips_finished_steps(k9s, session):
    setup_software(k9s, cleanup=False)
    result = setup_software(k9s, cleanup=False)

    assert result.completed == ["download", "extract"]
    assert result.skipped == ["install", "configure"]
    assert session.calls == [K9S_URL]


def test_setup_software_without_configure(k9s):
    result = setup_software(k9s, configure=False)
    assert "configure" not in result.completed + result.skipped
    assert k9s.is_installed()
    assert not k9s.is_configured()


def test_cleanup_failure_is_a_warning(k9s, monkeypatch):
    original = k9s.file_manager.remove_all

    def remove_all(path):
        if path == k9s.download_folder():
            raise FileSystemError("busy", OSError("busy"), path)
        original(path)

    monkeypatch.setattr(k9s.file_manager, "remove_all", remove_all)
    result = setup_software(k9s)

    assert "cleanup" not in result.completed
    assert len(result.warnings) == 1
    assert k9s.is_configured()


def test_teardown_software(k9s, paths):
    setup_software(k9s)
    result = teardown_software(k9s)

    assert result.completed == ["remove_configuration", "uninstall", "cleanup"]
    assert not os.path.lexists(os.path.join(paths.system_bin_dir, "k9s"))
    assert not k9s.is_installed()


def test_download_software(k9s):
    result = download_software(k9s)

    assert result.completed == ["download", "extract"]
    assert os.path.isfile(os.path.join(k9s.extract_folder(), "k9s"))
    assert not k9s.is_installed()
