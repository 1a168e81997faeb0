"""System package installation service for rdpprovisioner."""

from typing import Callable, List, Sequence

from rdpprovisioner.constants import MANAGED_SERVICES


class PackageService:
    """Installs the remote-desktop package set and enables its services."""

    BASE_PACKAGES = (
        "xrdp",
        "dbus-x11",
        "xorgxrdp",
        "git",
        "curl",
        "jq",
        "docker.io",
        "docker-compose-plugin",
        "openssh-server",
    )
    APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def package_list(self, desktop: str) -> List[str]:
        packages = list(self.BASE_PACKAGES)
        # desktop and its goodies go right after dbus-x11
        packages[2:2] = [desktop, f"{desktop}-goodies"]
        return packages

    def install(self, desktop: str, run_cmd: Callable):
        self.console.print("[blue]Updating apt packages...[/blue]")
        self.logger.info("Updating apt package index...")
        run_cmd(["apt-get", "update", "-y", "-qq"], env=self.APT_ENV)

        packages = self.package_list(desktop)
        self.console.print(f"[blue]Installing {len(packages)} packages...[/blue]")
        self.logger.info("Installing packages: %s", " ".join(packages))
        run_cmd(["apt-get", "install", "-y", "-qq"] + packages, env=self.APT_ENV)
        self.console.print("[green]Packages installed.[/green]")

    def enable_services(self, run_cmd: Callable, services: Sequence[str] = MANAGED_SERVICES):
        for service in services:
            for action in ("enable", "start"):
                result = run_cmd(["systemctl", action, service], check=False, capture_output=True)
                if result.returncode != 0:
                    self.logger.warning("Could not %s service %s; continuing.", action, service)
