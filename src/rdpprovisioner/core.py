import logging
import os
import re
import shutil
import subprocess
import uuid
from dataclasses import replace
from typing import List, Optional

import requests
from rich.console import Console
from rich.table import Table

from .constants import (
    DOCKERFILE,
    GUAC_WEB_PATH,
    MANIFEST_FILE,
    SSH_CONNECTION_HOST,
    SSH_CONNECTION_NAME,
    SSH_PORT,
)
from .errors import ProvisionerError
from .errors_catalog import actionable_error
from .models import FailurePolicy, ProvisionConfig, ProvisionStep, StepResult
from .services.accounts import AccountService
from .services.command_runner import CommandRunner
from .services.docker_runtime import DockerRuntimeService
from .services.filesystem import FileSystemService
from .services.firewall import FirewallService
from .services.gateway_image import GatewayImageService
from .services.manifest import ManifestService
from .services.packages import PackageService
from .services.publisher import ArtifactPublisher
from .services.xrdp import XrdpService

console = Console()
logger = logging.getLogger("rdpprovisioner")

USERNAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")
REPO_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


class Provisioner:
    def __init__(
        self,
        config: ProvisionConfig,
        verbose: bool = False,
        dry_run: bool = False,
        manifest_file: Optional[str] = None,
    ):
        self.config = self._validate_config(config)
        self.verbose = verbose
        self.dry_run = dry_run
        self.run_id = uuid.uuid4().hex[:10]
        self.manifest_file = manifest_file or os.path.join(self.config.stack_dir, MANIFEST_FILE)

        self.command_runner = CommandRunner(
            logger=logger,
            secrets=[self.config.github_token] if self.config.github_token else None,
        )
        self.filesystem_service = FileSystemService(logger=logger)
        self.manifest_service = ManifestService(manifest_file=self.manifest_file, logger=logger)
        self.package_service = PackageService(logger=logger, console=console)
        self.account_service = AccountService(logger=logger, console=console)
        self.xrdp_service = XrdpService(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
        )
        self.firewall_service = FirewallService(logger=logger, console=console)
        self.gateway_image_service = GatewayImageService(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
        )
        self.docker_runtime_service = DockerRuntimeService(
            logger=logger,
            console=console,
            subprocess_module=subprocess,
            requests_module=requests,
        )
        self.publisher = ArtifactPublisher(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
        )

        # docker is only guaranteed to exist after the package step
        self.compose_cmd: Optional[List[str]] = None
        self.schema_written = False
        self.gateway_url: Optional[str] = None
        self.results: List[StepResult] = []

    def _validate_config(self, config: ProvisionConfig) -> ProvisionConfig:
        ports = {"--rdp-port": config.rdp_port, "--guac-port": config.guac_port}
        for label, value in ports.items():
            if not isinstance(value, int) or not 1 <= value <= 65535:
                raise ProvisionerError(actionable_error("invalid_port", label=label, value=str(value)))

        all_ports = [SSH_PORT, config.rdp_port, config.guac_port]
        if len(set(all_ports)) != len(all_ports):
            raise ProvisionerError(
                actionable_error("port_conflict", ports=", ".join(str(port) for port in all_ports))
            )

        if not isinstance(config.verify_delay_seconds, (int, float)) or config.verify_delay_seconds < 0:
            raise ProvisionerError(
                actionable_error("invalid_delay", value=str(config.verify_delay_seconds))
            )

        if not USERNAME_PATTERN.match(config.target_user or ""):
            raise ProvisionerError(actionable_error("invalid_username", value=repr(config.target_user)))

        if not config.create_github:
            # the token is never touched unless publishing was requested
            return replace(config, github_token=None)

        repo = (config.github_repo or "").strip()
        if repo.endswith(".git"):
            repo = repo[: -len(".git")]
        if repo and not REPO_PATTERN.match(repo):
            raise ProvisionerError(actionable_error("invalid_repo", value=repr(config.github_repo)))
        return replace(config, github_repo=repo or None)

    def build_steps(self) -> List[ProvisionStep]:
        return [
            ProvisionStep("preflight", "Check root privileges and apt", FailurePolicy.FATAL, self.preflight),
            ProvisionStep(
                "install_packages",
                "Install XRDP, desktop, Docker and tools",
                FailurePolicy.FATAL,
                self.install_packages,
            ),
            ProvisionStep(
                "provision_user",
                f"Create user {self.config.target_user}",
                FailurePolicy.FATAL,
                self.provision_user,
            ),
            ProvisionStep(
                "configure_xrdp",
                f"Point XRDP at {self.config.desktop} on port {self.config.rdp_port}",
                FailurePolicy.TOLERATED,
                self.configure_xrdp,
            ),
            ProvisionStep(
                "configure_firewall",
                f"Open TCP {SSH_PORT}, {self.config.rdp_port}, {self.config.guac_port}",
                FailurePolicy.TOLERATED,
                self.configure_firewall,
            ),
            ProvisionStep(
                "build_gateway_image",
                "Write SQL seed and build the Guacamole image",
                FailurePolicy.FATAL,
                self.build_gateway_image,
            ),
            ProvisionStep(
                "launch_stack",
                "Start guacd, PostgreSQL and Guacamole",
                FailurePolicy.FATAL,
                self.launch_stack,
            ),
            ProvisionStep(
                "verify_stack",
                "Check that the Guacamole container runs",
                FailurePolicy.TOLERATED,
                self.verify_stack,
            ),
            ProvisionStep(
                "save_artifacts",
                f"Commit artifacts in {self.config.install_dir}",
                FailurePolicy.FATAL,
                self.save_artifacts,
            ),
            ProvisionStep(
                "publish_artifacts",
                f"Push artifacts to GitHub ({self.config.github_repo or 'not configured'})",
                FailurePolicy.TOLERATED,
                self.publish_artifacts,
                enabled=self.config.publish_enabled,
            ),
        ]

    def _run_step(self, step: ProvisionStep) -> StepResult:
        if not step.enabled:
            logger.info("Skipping step: %s", step.name)
            self.manifest_service.step_started(step.name, step.policy.value)
            self.manifest_service.step_finished(step.name, "skipped")
            result = StepResult(step.name, "skipped")
            self.results.append(result)
            return result

        logger.info("Step %s: %s", step.name, step.description)
        self.manifest_service.step_started(step.name, step.policy.value)

        try:
            step.callback()
        except ProvisionerError as exc:
            error = str(exc)
            if step.policy is FailurePolicy.FATAL:
                logger.error(actionable_error("step_failed", step=step.name))
                self.manifest_service.step_finished(step.name, "failed", error=error)
                self.results.append(StepResult(step.name, "failed", error))
                raise
            logger.warning("Step %s failed and was tolerated: %s", step.name, error)
            console.print(f"[yellow]Warning:[/yellow] {error}")
            self.manifest_service.step_finished(step.name, "tolerated", error=error)
            result = StepResult(step.name, "tolerated", error)
            self.results.append(result)
            return result
        except Exception as exc:
            error = self.command_runner.redact(str(exc))
            if step.policy is FailurePolicy.FATAL:
                self.manifest_service.step_finished(step.name, "failed", error=error)
                self.results.append(StepResult(step.name, "failed", error))
                raise
            logger.warning("Step %s failed unexpectedly and was tolerated", step.name, exc_info=True)
            console.print(f"[yellow]Warning:[/yellow] {error}")
            self.manifest_service.step_finished(step.name, "tolerated", error=error)
            result = StepResult(step.name, "tolerated", error)
            self.results.append(result)
            return result

        self.manifest_service.step_finished(step.name, "success")
        result = StepResult(step.name, "success")
        self.results.append(result)
        return result

    def _run_cmd(self, cmd: List[str], check: bool = True, capture_output: bool = False, **kwargs):
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, **kwargs)

    def _get_docker_compose_cmd(self) -> List[str]:
        return self.docker_runtime_service.get_docker_compose_cmd()

    def preflight(self):
        geteuid = getattr(os, "geteuid", None)
        if geteuid is None or geteuid() != 0:
            raise ProvisionerError(actionable_error("not_root"))
        if shutil.which("apt-get") is None:
            raise ProvisionerError(actionable_error("command_not_found", command="apt-get"))

        for name in self.config.default_credentials_in_use():
            logger.warning("Using the built-in default for %s; only suitable for throwaway CI hosts.", name)

    def install_packages(self):
        self.package_service.install(self.config.desktop, self._run_cmd)
        self.package_service.enable_services(self._run_cmd)

    def provision_user(self):
        created = self.account_service.ensure_user(
            self.config.target_user,
            self.config.user_password,
            self._run_cmd,
        )
        self.manifest_service.set_outcome("user_created", created)

    def configure_xrdp(self):
        home_dir = self.account_service.home_dir(self.config.target_user, self._run_cmd)
        self.xrdp_service.configure(
            username=self.config.target_user,
            home_dir=home_dir,
            desktop=self.config.desktop,
            port=self.config.rdp_port,
            run_cmd=self._run_cmd,
        )

    def configure_firewall(self):
        ports = self.firewall_service.ports(self.config.rdp_port, self.config.guac_port)
        applied = self.firewall_service.configure(ports, self._run_cmd)
        self.manifest_service.set_outcome("firewall_configured", applied)

    def build_gateway_image(self):
        build_dir = self.config.build_dir
        self.gateway_image_service.write_build_context(
            build_dir=build_dir,
            admin_user=self.config.admin_user,
            admin_password=self.config.admin_password,
            ssh_user=self.config.target_user,
        )
        if self.config.init_schema:
            self.gateway_image_service.dump_schema(build_dir, self._run_cmd)
            self.schema_written = True
        self.gateway_image_service.build_image(build_dir, self._run_cmd)

    def launch_stack(self):
        if self.compose_cmd is None:
            self.compose_cmd = self._get_docker_compose_cmd()

        compose_path = self.docker_runtime_service.create_compose_file(
            self.config,
            include_schema=self.schema_written,
            filesystem_service=self.filesystem_service,
        )
        self.manifest_service.add_artifact("compose_file", compose_path)
        self.docker_runtime_service.start_stack(self.compose_cmd, compose_path, self._run_cmd)

    def verify_stack(self):
        url = self.docker_runtime_service.verify_stack(
            guac_port=self.config.guac_port,
            delay_seconds=self.config.verify_delay_seconds,
            run_cmd=self._run_cmd,
        )
        self.manifest_service.set_outcome("gateway_running", url is not None)
        if url is None:
            raise ProvisionerError("Guacamole containers failed to start. Check `docker compose logs`.")

        self.gateway_url = url
        self.manifest_service.set_outcome("gateway_url", url)
        console.print(f"[bold green]Guacamole running at: {url}[/bold green]")
        console.print(f"   Login: {self.config.admin_user}")
        console.print(
            f"   Connection: '{SSH_CONNECTION_NAME}' -> {SSH_CONNECTION_HOST}:{SSH_PORT} "
            f"(user: {self.config.target_user})"
        )
        logger.info("Guacamole running at: %s", url)

    def save_artifacts(self):
        generated = [os.path.join(self.config.build_dir, DOCKERFILE)]
        committed = self.publisher.save(self.config, generated, self._run_cmd)
        self.manifest_service.add_artifact("install_dir", self.config.install_dir)
        self.manifest_service.set_outcome("artifacts_committed", committed)

    def publish_artifacts(self):
        if not self.publisher.publish(self.config, self._run_cmd):
            raise ProvisionerError("Push failed (token permissions?).")
        self.manifest_service.set_outcome("published_repo", self.config.github_repo)

    def print_plan(self):
        table = Table(title="Provisioning plan")
        table.add_column("#", justify="right")
        table.add_column("Step")
        table.add_column("Policy")
        table.add_column("Action")
        for index, step in enumerate(self.build_steps(), start=1):
            action = step.description if step.enabled else f"[dim]skipped: {step.description}[/dim]"
            table.add_row(str(index), step.name, step.policy.value, action)
        console.print(table)
        console.print(
            f"Gateway will listen on port {self.config.guac_port} at {GUAC_WEB_PATH}; "
            f"RDP on port {self.config.rdp_port}."
        )

    def print_summary(self):
        colours = {"success": "green", "tolerated": "yellow", "skipped": "dim", "failed": "red"}
        table = Table(title="Provisioning summary")
        table.add_column("Step")
        table.add_column("Status")
        table.add_column("Detail")
        for result in self.results:
            colour = colours.get(result.status, "white")
            table.add_row(result.name, f"[{colour}]{result.status}[/{colour}]", result.error or "")
        console.print(table)

    def run(self) -> int:
        if self.dry_run:
            logger.info("Dry run: no command will be executed.")
            self.print_plan()
            return 0

        exit_code = 1
        manifest_status = "failed"
        manifest_error: Optional[str] = None

        try:
            logger.info("Starting rdpprovisioner run %s...", self.run_id)
            self.manifest_service.start_run(run_id=self.run_id, config=self.config.public_dict())

            for step in self.build_steps():
                self._run_step(step)

            tolerated = [result.name for result in self.results if result.status == "tolerated"]
            manifest_status = "success_with_warnings" if tolerated else "success"
            console.print("[bold green]CI setup finished.[/bold green]")
            exit_code = 0
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            manifest_status = "aborted"
            manifest_error = "Operation cancelled by user."
            return exit_code
        except ProvisionerError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            manifest_error = str(exc)
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            manifest_error = self.command_runner.redact(str(exc))
            return exit_code
        finally:
            if self.results:
                self.print_summary()
            self.manifest_service.finalize(manifest_status, error=manifest_error)
