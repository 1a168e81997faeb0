import subprocess

from rdpprovisioner.services.accounts import AccountService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeAccounts:
    def __init__(self, existing=(), usermod_fails=False):
        self.existing = set(existing)
        self.usermod_fails = usermod_fails
        self.calls = []

    def __call__(self, cmd, check=True, capture_output=False, **kwargs):
        self.calls.append((cmd, kwargs))
        if cmd[0] == "id":
            returncode = 0 if cmd[-1] in self.existing else 1
            return subprocess.CompletedProcess(cmd, returncode, stdout="1001\n", stderr="")
        if cmd[0] == "useradd":
            self.existing.add(cmd[-1])
        if cmd[0] == "usermod" and self.usermod_fails:
            return subprocess.CompletedProcess(cmd, 6, stdout="", stderr="group missing")
        if cmd[0] == "getent":
            return subprocess.CompletedProcess(
                cmd, 0, stdout="ciuser:x:1001:1001::/srv/ciuser:/bin/bash\n", stderr=""
            )
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


def test_ensure_user_creates_missing_account():
    service = AccountService(logger=DummyLogger(), console=DummyConsole())
    accounts = FakeAccounts()

    created = service.ensure_user("ciuser", "password", accounts)

    commands = [call[0] for call in accounts.calls]
    assert created is True
    assert ["useradd", "-m", "-s", "/bin/bash", "ciuser"] in commands
    assert ["usermod", "-aG", "sudo", "ciuser"] in commands
    chpasswd = [call for call in accounts.calls if call[0] == ["chpasswd"]][0]
    assert chpasswd[1]["input_text"] == "ciuser:password\n"


def test_ensure_user_is_noop_for_existing_account():
    service = AccountService(logger=DummyLogger(), console=DummyConsole())
    accounts = FakeAccounts(existing={"ciuser"})

    created = service.ensure_user("ciuser", "password", accounts)

    assert created is False
    assert [call[0][0] for call in accounts.calls] == ["id"]


def test_ensure_user_tolerates_group_membership_failure():
    service = AccountService(logger=DummyLogger(), console=DummyConsole())

    assert service.ensure_user("ciuser", "password", FakeAccounts(usermod_fails=True)) is True


def test_home_dir_reads_passwd_entry():
    service = AccountService(logger=DummyLogger(), console=DummyConsole())

    assert service.home_dir("ciuser", FakeAccounts()) == "/srv/ciuser"
