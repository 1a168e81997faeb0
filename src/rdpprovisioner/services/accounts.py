"""Local account provisioning service for rdpprovisioner."""

from typing import Callable

from rdpprovisioner.constants import ADMIN_GROUP, LOGIN_SHELL


class AccountService:
    """Creates the remote-desktop login account when it does not exist yet."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def user_exists(self, username: str, run_cmd: Callable) -> bool:
        result = run_cmd(["id", "-u", username], check=False, capture_output=True)
        return result.returncode == 0

    def ensure_user(self, username: str, password: str, run_cmd: Callable) -> bool:
        """Returns True when the account was created by this call."""
        if self.user_exists(username, run_cmd):
            self.logger.info("User %s already exists; leaving it unchanged.", username)
            return False

        self.console.print(f"[blue]Creating user: {username}[/blue]")
        self.logger.info("Creating user: %s", username)
        run_cmd(["useradd", "-m", "-s", LOGIN_SHELL, username])
        run_cmd(["chpasswd"], input_text=f"{username}:{password}\n")

        result = run_cmd(
            ["usermod", "-aG", ADMIN_GROUP, username], check=False, capture_output=True
        )
        if result.returncode != 0:
            self.logger.warning("Could not add %s to group %s.", username, ADMIN_GROUP)

        self.console.print(f"[green]User {username} created.[/green]")
        return True

    def home_dir(self, username: str, run_cmd: Callable) -> str:
        result = run_cmd(["getent", "passwd", username], check=False, capture_output=True)
        if result.returncode == 0 and result.stdout:
            fields = result.stdout.strip().split(":")
            if len(fields) >= 6 and fields[5]:
                return fields[5]
        return f"/home/{username}"
