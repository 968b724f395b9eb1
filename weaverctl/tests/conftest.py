import hashlib
import io
import os
import tarfile

import pytest
import requests

from weaverctl.config import reset_config
from weaverctl.modules.software.base import BaseInstaller
from weaverctl.modules.software.catalog import ArtifactCollection
from weaverctl.modules.software.downloader import Downloader
from weaverctl.modules.software.paths import WeaverPaths


def sha256_hex(data):
    return hashlib.sha256(data).hexdigest()


def make_tar_gz(files, symlinks=None):
    """Build a .tar.gz in memory from {name: bytes} and {name: link target}."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(data))
        for name, target in (symlinks or {}).items():
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
    return buf.getvalue()


def make_response(url, status=200, body=b"", headers=None):
    response = requests.Response()
    response.url = url
    response.status_code = status
    response.headers.update(headers or {})
    response.raw = io.BytesIO(body)
    return response


class FakeSession:
    """Stands in for requests.Session, serving canned responses by URL."""

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.max_redirects = None

    def add(self, url, body=b"", status=200, headers=None):
        self.routes[url] = (status, body, headers or {})

    def redirect(self, url, location, status=302):
        self.add(url, status=status, headers={"Location": location})

    def get(self, url, stream=False, allow_redirects=True, timeout=None):
        self.calls.append(url)
        if url not in self.routes:
            raise requests.ConnectionError(f"no route to {url}")
        status, body, headers = self.routes[url]
        return make_response(url, status, body, headers)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("WEAVER_"):
            monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def digest():
    return sha256_hex


@pytest.fixture
def tar_gz():
    return make_tar_gz


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def paths(tmp_path):
    return WeaverPaths(home=str(tmp_path / "weaver"), root_dir=str(tmp_path / "root"))


@pytest.fixture
def make_installer(paths, session):
    """Build a BaseInstaller for a catalog dict, pinned to linux/amd64."""
    def factory(catalog_data, name, version=None):
        artifact = ArtifactCollection.from_dict(catalog_data).get_artifact_by_name(name)
        return BaseInstaller(
            artifact.with_platform("linux", "amd64"),
            version=version,
            downloader=Downloader(paths.temp_dir, session=session),
            paths=paths,
        )
    return factory
