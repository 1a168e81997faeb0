"""Artifact saving and GitHub publishing service for rdpprovisioner."""

import os
from typing import Callable, Iterable, List

import yaml

from rdpprovisioner.constants import (
    COMMIT_MESSAGE,
    CONFIG_SNAPSHOT_FILE,
    GIT_BRANCH,
    GITHUB_HOST,
    GUAC_WEB_PATH,
    README_FILE,
    SSH_CONNECTION_HOST,
    SSH_CONNECTION_NAME,
    SSH_PORT,
)


class ArtifactPublisher:
    """Keeps the generated deployment files in a git repository and optionally pushes it."""

    def __init__(self, logger, console, filesystem_service):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service

    def build_readme(self, config) -> str:
        return f"""
# Ubuntu RDP + Guacamole (CI-ready)
- XRDP + {config.desktop} (port {config.rdp_port})
- Guacamole (port {config.guac_port}, path {GUAC_WEB_PATH})
- Preconfigured connection '{SSH_CONNECTION_NAME}' to {SSH_CONNECTION_HOST}:{SSH_PORT} as {config.target_user}
- Gateway login user: {config.admin_user}
- Re-run with: rdp-provisioner --config {CONFIG_SNAPSHOT_FILE}
""".strip() + "\n"

    def build_config_snapshot(self, config) -> str:
        return yaml.safe_dump(config.public_dict(), sort_keys=True, default_flow_style=False)

    @staticmethod
    def _git(install_dir: str, *args: str) -> List[str]:
        return ["git", "-C", install_dir, *args]

    @staticmethod
    def remote_url(repo: str, token: str = "") -> str:
        credentials = f"{token}@" if token else ""
        return f"https://{credentials}{GITHUB_HOST}/{repo}.git"

    def write_artifacts(self, config, generated_files: Iterable[str]) -> List[str]:
        install_dir = config.install_dir
        self.filesystem_service.ensure_dir(install_dir)

        written = []
        readme_path = os.path.join(install_dir, README_FILE)
        self.filesystem_service.write_text(readme_path, self.build_readme(config))
        written.append(readme_path)

        snapshot_path = os.path.join(install_dir, CONFIG_SNAPSHOT_FILE)
        self.filesystem_service.write_text(snapshot_path, self.build_config_snapshot(config))
        written.append(snapshot_path)

        for source in generated_files:
            if not os.path.exists(source):
                self.logger.warning("Generated file %s is missing; not saved.", source)
                continue
            destination = os.path.join(install_dir, os.path.basename(source))
            self.filesystem_service.copy_file(source, destination)
            written.append(destination)

        return written

    def commit(self, config, run_cmd: Callable) -> bool:
        """Returns True when a new commit was recorded."""
        install_dir = config.install_dir
        if os.path.isdir(os.path.join(install_dir, ".git")):
            self.logger.debug("Repository already initialized at %s", install_dir)
        else:
            run_cmd(self._git(install_dir, "init", "-q"))

        run_cmd(self._git(install_dir, "config", "user.name", config.git_name))
        run_cmd(self._git(install_dir, "config", "user.email", config.git_email))
        run_cmd(self._git(install_dir, "add", "-A"))

        result = run_cmd(
            self._git(install_dir, "commit", "-q", "-m", COMMIT_MESSAGE),
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            self.logger.info("Nothing new to commit in %s", install_dir)
            return False
        return True

    def save(self, config, generated_files: Iterable[str], run_cmd: Callable) -> bool:
        self.console.print(f"[blue]Saving artifacts to {config.install_dir}...[/blue]")
        self.write_artifacts(config, generated_files)
        committed = self.commit(config, run_cmd)
        self.console.print("[green]Artifacts saved.[/green]")
        return committed

    def publish(self, config, run_cmd: Callable) -> bool:
        """Force-pushes the install directory. Returns True when the push succeeded."""
        if not config.publish_enabled:
            self.logger.info("GitHub publishing disabled; skipping push.")
            return False

        install_dir = config.install_dir
        repo = config.github_repo
        self.console.print(f"[blue]Pushing setup artifacts to GitHub repo: {repo}[/blue]")

        existing = run_cmd(
            self._git(install_dir, "remote", "get-url", "origin"),
            check=False,
            capture_output=True,
        )
        action = "set-url" if existing.returncode == 0 else "add"
        try:
            run_cmd(
                self._git(install_dir, "remote", action, "origin", self.remote_url(repo, config.github_token))
            )
            run_cmd(self._git(install_dir, "branch", "-M", GIT_BRANCH))
            result = run_cmd(
                self._git(install_dir, "push", "-u", "origin", GIT_BRANCH, "--force"),
                check=False,
                capture_output=True,
                env={"GIT_TERMINAL_PROMPT": "0"},
            )
        finally:
            scrub = run_cmd(
                self._git(install_dir, "remote", "set-url", "origin", self.remote_url(repo)),
                check=False,
                capture_output=True,
            )
            if scrub.returncode != 0:
                self.logger.warning("Could not reset the origin URL in %s.", install_dir)

        if result.returncode != 0:
            return False

        self.console.print("[green]Artifacts pushed.[/green]")
        return True
