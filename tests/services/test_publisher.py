import subprocess

import pytest
import yaml

from rdpprovisioner.errors import ProvisionerError
from rdpprovisioner.models import ProvisionConfig
from rdpprovisioner.services.filesystem import FileSystemService
from rdpprovisioner.services.publisher import ArtifactPublisher

TOKEN = "ghp_supersecrettoken"


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def __init__(self):
        self.lines = []

    def print(self, *args, **_kwargs):
        self.lines.extend(str(arg) for arg in args)


class FakeGit:
    """Records git invocations and keeps track of the origin URL."""

    def __init__(self, commit_returncode=0, push_returncode=0, origin=None):
        self.calls = []
        self.commit_returncode = commit_returncode
        self.push_returncode = push_returncode
        self.origin = origin

    def __call__(self, cmd, check=True, capture_output=False, **kwargs):
        self.calls.append(cmd)
        args = cmd[3:]
        returncode = 0
        stdout = ""
        if args[:2] == ["remote", "get-url"]:
            returncode = 0 if self.origin else 2
            stdout = self.origin or ""
        elif args[:2] in (["remote", "add"], ["remote", "set-url"]):
            self.origin = args[3]
        elif args[:1] == ["commit"]:
            returncode = self.commit_returncode
        elif args[:1] == ["push"]:
            returncode = self.push_returncode
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr="")

    def git_args(self):
        return [call[3:] for call in self.calls]


def _publisher(console=None) -> ArtifactPublisher:
    return ArtifactPublisher(
        logger=DummyLogger(),
        console=console or DummyConsole(),
        filesystem_service=FileSystemService(logger=DummyLogger()),
    )


def _config(tmp_path, **overrides) -> ProvisionConfig:
    values = {
        "install_dir": str(tmp_path / "install"),
        "create_github": True,
        "github_repo": "owner/ci-host",
        "github_token": TOKEN,
    }
    values.update(overrides)
    return ProvisionConfig(**values)


def test_save_writes_readme_snapshot_and_commits(tmp_path):
    dockerfile = tmp_path / "Dockerfile"
    dockerfile.write_text("FROM guacamole/guacamole:latest\n", encoding="utf-8")
    git = FakeGit()
    config = _config(tmp_path)

    committed = _publisher().save(config, [str(dockerfile)], git)

    install = tmp_path / "install"
    assert committed is True
    assert "Guacamole (port 8080" in (install / "README.md").read_text(encoding="utf-8")
    assert (install / "Dockerfile").exists()
    snapshot = yaml.safe_load((install / "provision.yml").read_text(encoding="utf-8"))
    assert snapshot["target_user"] == "ciuser"
    assert "github_token" not in snapshot
    assert "admin_password" not in snapshot
    assert git.git_args() == [
        ["init", "-q"],
        ["config", "user.name", "GitHub Action Bot"],
        ["config", "user.email", "actions@github.com"],
        ["add", "-A"],
        ["commit", "-q", "-m", "CI build: Ubuntu RDP + Guacamole with default SSH connection"],
    ]
    for path in install.iterdir():
        assert TOKEN not in path.read_text(encoding="utf-8")


def test_save_skips_init_when_repository_exists_and_tolerates_empty_commit(tmp_path):
    (tmp_path / "install" / ".git").mkdir(parents=True)
    git = FakeGit(commit_returncode=1)

    committed = _publisher().save(_config(tmp_path), [], git)

    assert committed is False
    assert ["init", "-q"] not in git.git_args()


def test_publish_scrubs_token_from_remote_after_push(tmp_path):
    git = FakeGit()

    assert _publisher().publish(_config(tmp_path), git) is True

    args = git.git_args()
    assert ["remote", "add", "origin", f"https://{TOKEN}@github.com/owner/ci-host.git"] in args
    assert ["branch", "-M", "main"] in args
    assert ["push", "-u", "origin", "main", "--force"] in args
    assert args[-1] == ["remote", "set-url", "origin", "https://github.com/owner/ci-host.git"]
    assert git.origin == "https://github.com/owner/ci-host.git"


def test_publish_overwrites_existing_remote_and_scrubs_after_failed_push(tmp_path):
    git = FakeGit(push_returncode=128, origin="https://github.com/owner/old.git")

    assert _publisher().publish(_config(tmp_path), git) is False

    args = git.git_args()
    assert ["remote", "set-url", "origin", f"https://{TOKEN}@github.com/owner/ci-host.git"] in args
    assert ["remote", "add", "origin", f"https://{TOKEN}@github.com/owner/ci-host.git"] not in args
    assert TOKEN not in git.origin


def test_publish_disabled_runs_no_git_command(tmp_path):
    git = FakeGit()

    assert _publisher().publish(_config(tmp_path, create_github=False), git) is False
    assert git.calls == []


def test_remote_url_without_token_is_plain_https():
    assert ArtifactPublisher.remote_url("owner/repo") == "https://github.com/owner/repo.git"


def test_publish_reports_remote_add_failure_when_scrub_also_fails(tmp_path):
    git = FakeGit()

    def run_cmd(cmd, check=True, capture_output=False, **kwargs):
        args = cmd[3:]
        if args[:2] == ["remote", "add"]:
            git.calls.append(cmd)
            raise ProvisionerError("Command failed (3): git remote add origin")
        if args[:2] == ["remote", "set-url"]:
            git.calls.append(cmd)
            return subprocess.CompletedProcess(cmd, 2, stdout="", stderr="error: No such remote 'origin'")
        return git(cmd, check=check, capture_output=capture_output, **kwargs)

    with pytest.raises(ProvisionerError, match="git remote add origin"):
        _publisher().publish(_config(tmp_path), run_cmd)

    assert git.git_args()[-1] == ["remote", "set-url", "origin", "https://github.com/owner/ci-host.git"]
