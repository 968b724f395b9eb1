import pytest

from weaverctl.modules.software.catalog import ArtifactCollection, ArtifactMetadata
from weaverctl.modules.software.errors import (
    ArtifactFileNotFoundError,
    ConfigLoadError,
    PlatformNotFoundError,
    SoftwareNotFoundError,
    TemplateError,
    VersionNotFoundError,
)
from weaverctl.modules.software.models import Checksum

HELM = {
    "name": "helm",
    "versions": {
        "3.18.6": {
            "archives": [{
                "name": "helm-v{{ VERSION }}-{{ OS }}-{{ ARCH }}.tar.gz",
                "url": "https://get.helm.sh/helm-v{{ VERSION }}-{{ OS }}-{{ ARCH }}.tar.gz",
                "linux": {"amd64": {"algorithm": "sha256", "checksum": "aa" * 32}},
            }],
            "binaries": [{
                "name": "{{ OS }}-{{ ARCH }}/helm",
                "archive": "helm-v{{ VERSION }}-{{ OS }}-{{ ARCH }}.tar.gz",
            }],
        },
        "3.9.0": {},
        "3.17.2": {},
    },
}

KUBELET = {
    "name": "kubelet",
    "versions": {
        "1.33.4": {
            "binaries": [
                {"name": "kubelet", "url": "https://dl.k8s.io/v{{ VERSION }}/bin/{{ OS }}/{{ ARCH }}/kubelet",
                 "linux": {"amd64": {"algorithm": "sha256", "checksum": "bb" * 32}}},
            ],
            "configs": [
                {"name": "kubelet.service", "url": "https://raw.githubusercontent.com/k/kubelet.service",
                 "algorithm": "sha256", "checksum": "cc" * 32},
            ],
        },
    },
}


@pytest.fixture
def collection():
    return ArtifactCollection.from_dict({"artifact": [HELM, KUBELET]})


def test_bundled_catalog_loads():
    catalog = ArtifactCollection.load()
    assert catalog.names() == ["cilium", "cri-o", "helm", "k9s", "kubeadm", "kubectl", "kubelet", "teleport"]
    assert catalog.get_artifact_by_name("kubectl").get_latest_version() == "1.33.4"


def test_unknown_software(collection):
    with pytest.raises(SoftwareNotFoundError):
        collection.get_artifact_by_name("nginx")


def test_latest_version_uses_version_ordering(collection):
    assert collection.get_artifact_by_name("helm").get_latest_version() == "3.18.6"


@pytest.mark.parametrize("versions,latest", [
    (["1.0.0", "1.1.0", "1.0.1", "2.0.0", "1.10.0"], "2.0.0"),
    (["1.33.4", "1.33.5", "1.34.0", "1.33.6"], "1.34.0"),
    (["1.1.0-rc.1", "1.1.0", "1.0.9"], "1.1.0"),
    (["1.0.0", "1.0.0-1"], "1.0.0"),
    (["1.0.0-alpha", "1.0.0-alpha.beta", "1.0.0-alpha.1"], "1.0.0-alpha.beta"),
    (["1.0.0-rc.2", "1.0.0-rc.10", "1.0.0-beta.11"], "1.0.0-rc.10"),
])
def test_latest_version_ordering(versions, latest):
    artifact = ArtifactMetadata.from_dict({"name": "x", "versions": {v: {} for v in versions}})
    assert artifact.get_latest_version() == latest


def test_sorted_versions_follow_semver_precedence():
    artifact = ArtifactMetadata.from_dict({"name": "x", "versions": {
        v: {} for v in ["1.0.0-alpha.1", "1.0.0", "1.0.0-alpha", "1.0.0-beta.2", "1.0.0-1", "0.9.9"]
    }})
    assert artifact.sorted_versions() == ["1.0.0", "1.0.0-beta.2", "1.0.0-alpha.1", "1.0.0-alpha", "1.0.0-1", "0.9.9"]


@pytest.mark.parametrize("key", ["latest", "1.1.0rc1", "1.0"])
def test_non_semver_key_fails_lookup(key):
    artifact = ArtifactMetadata.from_dict({"name": "x", "versions": {"1.0.0": {}, key: {}}})
    with pytest.raises(VersionNotFoundError):
        artifact.get_latest_version()


def test_latest_version_fails_on_invalid_key():
    artifact = ArtifactMetadata.from_dict({"name": "x", "versions": {"1.0.0": {}, "latest": {}}})
    with pytest.raises(VersionNotFoundError) as exc:
        artifact.get_latest_version()
    assert exc.value.properties["version"] == "latest"


def test_latest_version_without_versions():
    with pytest.raises(VersionNotFoundError):
        ArtifactMetadata.from_dict({"name": "x"}).get_latest_version()


def test_unknown_version(collection):
    with pytest.raises(VersionNotFoundError):
        collection.get_artifact_by_name("helm").get_version_details("0.0.1")


def test_resolve_templates_for_platform(collection):
    helm = collection.get_artifact_by_name("helm").with_platform("linux", "amd64")

    archive = helm.resolve_archives("3.18.6")[0]
    assert archive.name == "helm-v3.18.6-linux-amd64.tar.gz"
    assert archive.url == "https://get.helm.sh/helm-v3.18.6-linux-amd64.tar.gz"

    binary = helm.resolve_binaries("3.18.6")[0]
    assert binary.name == "linux-amd64/helm"
    assert binary.archive == "helm-v3.18.6-linux-amd64.tar.gz"
    assert binary.url is None


def test_resolve_does_not_modify_catalog(collection):
    helm = collection.get_artifact_by_name("helm").with_platform("linux", "amd64")
    helm.resolve_archives("3.18.6")
    assert helm.get_version_details("3.18.6").archives[0].name == "helm-v{{ VERSION }}-{{ OS }}-{{ ARCH }}.tar.gz"


def test_primary_artifact(collection):
    helm = collection.get_artifact_by_name("helm").with_platform("linux", "amd64")
    assert helm.get_download_url("3.18.6") == "https://get.helm.sh/helm-v3.18.6-linux-amd64.tar.gz"
    assert helm.get_filename("3.18.6") == "helm-v3.18.6-linux-amd64.tar.gz"
    assert helm.get_checksum("3.18.6") == Checksum("sha256", "aa" * 32)

    kubelet = collection.get_artifact_by_name("kubelet").with_platform("linux", "amd64")
    assert kubelet.get_filename("1.33.4") == "kubelet"

    with pytest.raises(ArtifactFileNotFoundError):
        helm.get_download_url("3.9.0")


def test_missing_platform_checksum(collection):
    helm = collection.get_artifact_by_name("helm").with_platform("darwin", "arm64")
    with pytest.raises(PlatformNotFoundError) as exc:
        helm.get_checksum("3.18.6")
    assert exc.value.properties["os"] == "darwin"


def test_config_checksum_falls_back_to_flat_pair(collection):
    kubelet = collection.get_artifact_by_name("kubelet").with_platform("darwin", "arm64")
    config = kubelet.get_configs("1.33.4")[0]
    assert kubelet.checksum_for(config, "1.33.4") == Checksum("sha256", "cc" * 32)


def test_details_are_sorted_and_filtered():
    artifact = ArtifactMetadata.from_dict({
        "name": "tools",
        "versions": {"1.0.0": {
            "binaries": [
                {"name": "zeta", "url": "https://github.com/zeta"},
                {"name": "alpha", "archive": "tools.tar.gz"},
            ],
            "configs": [
                {"name": "b.conf", "url": "https://github.com/b.conf"},
                {"name": "a.conf", "url": "https://github.com/a.tar.gz", "archive": "a.tar.gz"},
            ],
        }},
    })
    details = artifact.get_version_details("1.0.0")
    assert [b.name for b in details.get_binaries()] == ["alpha", "zeta"]
    assert [b.name for b in details.binaries_by_url()] == ["zeta"]
    assert [b.name for b in details.binaries_by_archive()] == ["alpha"]
    assert [c.name for c in details.configs_by_url()] == ["b.conf"]
    assert [c.name for c in details.configs_by_archive()] == ["a.conf"]
    assert details.get_binary_by_name("zeta").url == "https://github.com/zeta"
    with pytest.raises(ArtifactFileNotFoundError):
        details.get_config_by_name("c.conf")


def test_resolve_template_for_pinned_platform():
    artifact = ArtifactMetadata.from_dict({"name": "x", "versions": {"2.1.0": {}}}).with_platform("darwin", "arm64")
    template = "https://example.com/{{VERSION}}/{{OS}}/{{ARCH}}/software.tar.gz"
    assert artifact.resolve(template, "2.1.0") == "https://example.com/2.1.0/darwin/arm64/software.tar.gz"
    with pytest.raises(TemplateError):
        artifact.resolve("https://example.com/{{VERSION/software.tar.gz", "2.1.0")


@pytest.mark.parametrize("template", [
    "{{ cycler.__init__.__globals__.os.getcwd() }}",
    "{{ VERSION.__class__.__mro__ }}",
    "{{ OS.__class__ }}",
])
def test_templates_cannot_reach_host_objects(template):
    artifact = ArtifactMetadata.from_dict({"name": "x", "versions": {"1.0.0": {}}}).with_platform("linux", "amd64")
    with pytest.raises(TemplateError) as exc:
        artifact.resolve(template, "1.0.0")
    assert exc.value.properties["software_name"] == "x"


def test_undefined_template_variable():
    artifact = ArtifactMetadata.from_dict({
        "name": "broken",
        "versions": {"1.0.0": {"binaries": [{"name": "x", "url": "https://github.com/{{ FLAVOR }}"}]}},
    }).with_platform("linux", "amd64")
    with pytest.raises(TemplateError):
        artifact.resolve_binaries("1.0.0")


def test_duplicate_names_rejected():
    with pytest.raises(ValueError):
        ArtifactCollection.from_dict({"artifact": [HELM, HELM]})


@pytest.mark.parametrize("content", [
    "artifact: [",
    "something: else\n",
    "artifact:\n  - name: x\n    versions:\n      '1.0':\n        binaries:\n          - url: https://github.com/x\n",
])
def test_load_invalid_catalog(tmp_path, content):
    path = tmp_path / "catalog.yaml"
    path.write_text(content)
    with pytest.raises(ConfigLoadError) as exc:
        ArtifactCollection.load(str(path))
    assert exc.value.properties["file_path"] == str(path)


def test_load_missing_catalog(tmp_path):
    with pytest.raises(ConfigLoadError):
        ArtifactCollection.load(str(tmp_path / "missing.yaml"))
