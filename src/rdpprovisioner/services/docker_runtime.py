"""Docker runtime services for rdpprovisioner."""

import json
import os
import subprocess
import time
from typing import Callable, List, Optional

import requests

from rdpprovisioner.constants import (
    COMPOSE_FILE,
    CUSTOM_IMAGE_TAG,
    DB_CONTAINER,
    DB_NAME,
    DB_USER,
    GUAC_CONTAINER,
    GUAC_INTERNAL_PORT,
    GUAC_WEB_PATH,
    GUACD_CONTAINER,
    GUACD_IMAGE,
    POSTGRES_IMAGE,
    SCHEMA_FILE,
    SEED_FILE,
)
from rdpprovisioner.errors import ProvisionerError
from rdpprovisioner.errors_catalog import actionable_error


def _compose_value(value) -> str:
    """Double-quoted YAML scalar with compose interpolation disabled."""
    return json.dumps(str(value).replace("$", "$$"))


class DockerRuntimeService:
    """Manages docker-compose detection, the gateway stack and its health check."""

    INITDB_DIR = "/docker-entrypoint-initdb.d"

    def __init__(self, logger, console, subprocess_module=subprocess, requests_module=requests):
        self.logger = logger
        self.console = console
        self.subprocess = subprocess_module
        self.requests = requests_module

    def get_docker_compose_cmd(self) -> List[str]:
        try:
            self.subprocess.run(["docker", "compose", "version"], check=True, capture_output=True)
            return ["docker", "compose"]
        except (self.subprocess.CalledProcessError, FileNotFoundError):
            try:
                self.subprocess.run(["docker-compose", "--version"], check=True, capture_output=True)
                return ["docker-compose"]
            except (self.subprocess.CalledProcessError, FileNotFoundError):
                raise ProvisionerError(actionable_error("compose_missing"))

    def build_compose_file(self, config, include_schema: bool) -> str:
        db_password = _compose_value(config.db_password)
        init_mounts = []
        if include_schema:
            schema_path = os.path.join(config.build_dir, SCHEMA_FILE)
            init_mounts.append(f"{schema_path}:{self.INITDB_DIR}/001-schema.sql:ro")
        seed_path = os.path.join(config.build_dir, SEED_FILE)
        init_mounts.append(f"{seed_path}:{self.INITDB_DIR}/002-initdb.sql:ro")
        init_volumes = "\n".join(f"      - {_compose_value(mount)}" for mount in init_mounts)

        return f"""
services:
  guacd:
    image: {GUACD_IMAGE}
    container_name: {GUACD_CONTAINER}
    restart: always

  postgres:
    image: {POSTGRES_IMAGE}
    container_name: {DB_CONTAINER}
    restart: always
    environment:
      POSTGRES_DB: {DB_NAME}
      POSTGRES_USER: {DB_USER}
      POSTGRES_PASSWORD: {db_password}
    volumes:
      - db_data:/var/lib/postgresql/data
{init_volumes}

  guacamole:
    image: {CUSTOM_IMAGE_TAG}
    container_name: {GUAC_CONTAINER}
    restart: always
    depends_on:
      - guacd
      - postgres
    environment:
      GUACD_HOSTNAME: guacd
      POSTGRES_HOSTNAME: postgres
      POSTGRES_DATABASE: {DB_NAME}
      POSTGRES_USER: {DB_USER}
      POSTGRES_PASSWORD: {db_password}
    ports:
      - "{config.guac_port}:{GUAC_INTERNAL_PORT}"

volumes:
  db_data:
""".strip() + "\n"

    def create_compose_file(self, config, include_schema: bool, filesystem_service) -> str:
        compose_path = os.path.join(config.stack_dir, COMPOSE_FILE)
        filesystem_service.ensure_dir(config.stack_dir)
        filesystem_service.write_text(compose_path, self.build_compose_file(config, include_schema))
        return compose_path

    def start_stack(self, compose_cmd: List[str], compose_path: str, run_cmd: Callable):
        self.console.print("[blue]Starting Guacamole stack...[/blue]")
        self.logger.info("Starting stack from %s", compose_path)
        run_cmd(compose_cmd + ["-f", compose_path, "up", "-d"])

    def is_container_running(self, name: str, run_cmd: Callable) -> bool:
        result = run_cmd(
            ["docker", "ps", "--filter", f"name=^{name}$", "--format", "{{.Names}}"],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return False
        return name in (result.stdout or "").split()

    def get_host_ip(self, run_cmd: Callable) -> str:
        result = run_cmd(["hostname", "-I"], check=False, capture_output=True)
        addresses = (result.stdout or "").split() if result.returncode == 0 else []
        return addresses[0] if addresses else "localhost"

    def probe_url(self, url: str, timeout: float = 5.0) -> Optional[int]:
        """Single GET against the web UI. Returns the HTTP status or None."""
        try:
            response = self.requests.get(url, timeout=timeout)
        except self.requests.RequestException as exc:
            self.logger.debug("Could not reach %s: %s", url, exc)
            return None
        try:
            return response.status_code
        finally:
            response.close()

    def verify_stack(self, guac_port: int, delay_seconds: float, run_cmd: Callable) -> Optional[str]:
        """Waits once, then checks the gateway container. Returns its URL when running."""
        self.console.print(f"[yellow]Waiting {delay_seconds:g}s for containers to start...[/yellow]")
        time.sleep(delay_seconds)

        if not self.is_container_running(GUAC_CONTAINER, run_cmd):
            return None

        host_ip = self.get_host_ip(run_cmd)
        url = f"http://{host_ip}:{guac_port}{GUAC_WEB_PATH}"
        status = self.probe_url(f"http://localhost:{guac_port}{GUAC_WEB_PATH}")
        if status is None:
            self.logger.warning("Gateway container is running but the web UI is not answering yet.")
        else:
            self.logger.info("Web UI answered with HTTP %s", status)
        return url
