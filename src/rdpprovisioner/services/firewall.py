"""Firewall configuration service for rdpprovisioner."""

import shutil
from typing import Callable, Iterable, List

from rdpprovisioner.constants import SSH_PORT


class FirewallService:
    """Opens the remote-access TCP ports in ufw when ufw is installed."""

    def __init__(self, logger, console, which=shutil.which):
        self.logger = logger
        self.console = console
        self.which = which

    def is_available(self) -> bool:
        return self.which("ufw") is not None

    @staticmethod
    def ports(rdp_port: int, guac_port: int) -> List[int]:
        return [SSH_PORT, rdp_port, guac_port]

    def configure(self, ports: Iterable[int], run_cmd: Callable) -> bool:
        """Returns False when ufw is absent and nothing was done."""
        if not self.is_available():
            self.logger.info("ufw not found; skipping firewall configuration.")
            self.console.print("[yellow]ufw not found, firewall left unchanged.[/yellow]")
            return False

        self.console.print("[blue]Configuring firewall...[/blue]")
        for port in ports:
            result = run_cmd(["ufw", "allow", f"{port}/tcp"], check=False, capture_output=True)
            if result.returncode != 0:
                self.logger.warning("Could not open port %s/tcp.", port)

        result = run_cmd(["ufw", "--force", "enable"], check=False, capture_output=True)
        if result.returncode != 0:
            self.logger.warning("Could not enable ufw.")
        self.console.print("[green]Firewall configured.[/green]")
        return True
