"""XRDP session and listener configuration for rdpprovisioner."""

import os
import re
from typing import Callable

from rdpprovisioner.constants import XRDP_INI_PATH
from rdpprovisioner.errors import ProvisionerError


class XrdpService:
    """Points XRDP sessions at the installed desktop and sets its listening port."""

    SESSION_COMMANDS = {
        "xfce4": "xfce4-session",
        "mate": "mate-session",
        "lxde": "startlxde",
        "lxqt": "startlxqt",
        "cinnamon": "cinnamon-session",
        "kde-plasma-desktop": "startplasma-x11",
        "ubuntu-desktop": "gnome-session",
    }
    PORT_LINE = re.compile(r"^port=.*$", flags=re.MULTILINE)

    def __init__(self, logger, console, filesystem_service, xrdp_ini_path: str = XRDP_INI_PATH):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service
        self.xrdp_ini_path = xrdp_ini_path

    def session_command(self, desktop: str) -> str:
        return self.SESSION_COMMANDS.get(desktop, f"{desktop}-session")

    def write_xsession(self, username: str, home_dir: str, desktop: str, run_cmd: Callable):
        xsession_path = os.path.join(home_dir, ".xsession")
        self.filesystem_service.write_text(xsession_path, f"{self.session_command(desktop)}\n")
        run_cmd(["chown", f"{username}:{username}", xsession_path], check=False, capture_output=True)
        self.logger.info("Wrote %s", xsession_path)

    def set_port(self, port: int) -> bool:
        """Rewrites the first ``port=`` entry. Returns True when the file changed."""
        if not os.path.exists(self.xrdp_ini_path):
            raise ProvisionerError(f"XRDP configuration not found: {self.xrdp_ini_path}")

        try:
            with open(self.xrdp_ini_path, "r", encoding="utf-8") as file_obj:
                content = file_obj.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise ProvisionerError(f"Could not read {self.xrdp_ini_path}: {exc}") from exc

        if not self.PORT_LINE.search(content):
            raise ProvisionerError(f"No port setting found in {self.xrdp_ini_path}")

        updated = self.PORT_LINE.sub(f"port={port}", content, count=1)
        if updated == content:
            return False

        self.filesystem_service.write_text(self.xrdp_ini_path, updated)
        self.logger.info("XRDP now listens on port %s", port)
        return True

    def configure(
        self,
        username: str,
        home_dir: str,
        desktop: str,
        port: int,
        run_cmd: Callable,
    ):
        self.console.print("[blue]Configuring XRDP session...[/blue]")
        self.write_xsession(username, home_dir, desktop, run_cmd)

        if self.set_port(port):
            result = run_cmd(["systemctl", "restart", "xrdp"], check=False, capture_output=True)
            if result.returncode != 0:
                self.logger.warning("Could not restart xrdp; the new port applies after a restart.")
        self.console.print("[green]XRDP configured.[/green]")
