import re

import pytest

from weaverctl.modules.software import utils
from weaverctl.modules.software.errors import TemplateError
from weaverctl.modules.software.render import render_file, render_string


@pytest.mark.parametrize("machine,arch", [("x86_64", "amd64"), ("aarch64", "arm64"), ("ppc64le", "ppc64le")])
def test_detect_platform(monkeypatch, machine, arch):
    monkeypatch.setattr(utils.platform, "system", lambda: "Linux")
    monkeypatch.setattr(utils.platform, "machine", lambda: machine)
    assert utils.detect_platform() == ("linux", arch)


@pytest.mark.parametrize("content,expected", [
    ('ID=ubuntu\nID_LIKE=debian\n', "/etc/default"),
    ('ID="debian"\n', "/etc/default"),
    ('ID="rocky"\nID_LIKE="rhel centos fedora"\n', "/etc/sysconfig"),
])
def test_get_sysconfig_dir(tmp_path, content, expected):
    release = tmp_path / "os-release"
    release.write_text(content)
    assert utils.get_sysconfig_dir(str(release)) == expected


def test_sysconfig_dir_without_os_release(tmp_path):
    assert utils.get_sysconfig_dir(str(tmp_path / "missing")) == "/etc/sysconfig"


def test_kubeadm_token_format():
    token = utils.generate_kubeadm_token()
    assert re.fullmatch(r"[a-z0-9]{6}\.[a-z0-9]{16}", token)
    assert token != utils.generate_kubeadm_token()


def test_render_string():
    assert render_string("v{{ VERSION }}-{{ OS }}", {"VERSION": "1.0", "OS": "linux"}) == "v1.0-linux"


def test_render_string_errors():
    with pytest.raises(TemplateError):
        render_string("{{ MISSING }}", {}, owner="helm")
    with pytest.raises(TemplateError):
        render_string("{{ broken", {})


def test_render_file_missing_template():
    with pytest.raises(TemplateError):
        render_file("nope.j2", owner="kubeadm")


def test_render_file_requires_all_variables():
    with pytest.raises(TemplateError):
        render_file("cilium-config.yaml.j2", owner="cilium", sandbox_dir="/sandbox")
