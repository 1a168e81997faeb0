import os
import stat
import subprocess
import sys

import pytest

from rdpprovisioner.errors import ProvisionerError
from rdpprovisioner.services.filesystem import FileSystemService
from rdpprovisioner.services.xrdp import XrdpService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


XRDP_INI = """[Globals]
ini_version=1
port=3389
use_vsock=false

[Xorg]
name=Xorg
port=-1
"""


def _service(tmp_path):
    ini_path = tmp_path / "xrdp.ini"
    ini_path.write_text(XRDP_INI, encoding="utf-8")
    service = XrdpService(
        logger=DummyLogger(),
        console=DummyConsole(),
        filesystem_service=FileSystemService(logger=DummyLogger()),
        xrdp_ini_path=str(ini_path),
    )
    return service, ini_path


def _ok(cmd, check=True, capture_output=False, **_kwargs):
    return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


def test_session_command_falls_back_to_desktop_session(tmp_path):
    service, _ = _service(tmp_path)

    assert service.session_command("xfce4") == "xfce4-session"
    assert service.session_command("budgie") == "budgie-session"


def test_set_port_rewrites_only_the_listener(tmp_path):
    service, ini_path = _service(tmp_path)

    assert service.set_port(3390) is True

    content = ini_path.read_text(encoding="utf-8")
    assert "port=3390" in content
    assert "port=-1" in content
    assert "port=3389" not in content


def test_set_port_leaves_default_untouched(tmp_path):
    service, ini_path = _service(tmp_path)

    assert service.set_port(3389) is False
    assert ini_path.read_text(encoding="utf-8") == XRDP_INI


def test_set_port_requires_configuration_file(tmp_path):
    service = XrdpService(
        logger=DummyLogger(),
        console=DummyConsole(),
        filesystem_service=FileSystemService(logger=DummyLogger()),
        xrdp_ini_path=str(tmp_path / "missing.ini"),
    )

    with pytest.raises(ProvisionerError, match="XRDP configuration not found"):
        service.set_port(3390)


def test_configure_writes_xsession_and_restarts_on_port_change(tmp_path):
    service, _ = _service(tmp_path)
    home = tmp_path / "home"
    calls = []

    def run_cmd(cmd, check=True, capture_output=False, **kwargs):
        calls.append(cmd)
        return _ok(cmd)

    service.configure("ciuser", str(home), "xfce4", 3390, run_cmd)

    assert (home / ".xsession").read_text(encoding="utf-8") == "xfce4-session\n"
    assert ["chown", "ciuser:ciuser", str(home / ".xsession")] in calls
    assert ["systemctl", "restart", "xrdp"] in calls


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
def test_write_xsession_keeps_home_directory_mode(tmp_path):
    service, _ = _service(tmp_path)
    home = tmp_path / "home"
    home.mkdir()
    os.chmod(home, 0o750)

    service.write_xsession("ciuser", str(home), "xfce4", _ok)

    assert stat.S_IMODE(os.stat(home).st_mode) == 0o750
    assert (home / ".xsession").exists()


def test_set_port_reports_unreadable_configuration(tmp_path):
    service, ini_path = _service(tmp_path)
    ini_path.write_bytes(b"[Globals]\nport=3389\n\xff\xfe\n")

    with pytest.raises(ProvisionerError, match="Could not read"):
        service.set_port(3390)
