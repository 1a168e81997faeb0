"""Subprocess execution service for rdpprovisioner."""

import os
import subprocess
from typing import Dict, Iterable, List, Optional

from rdpprovisioner.errors import ProvisionerError
from rdpprovisioner.errors_catalog import actionable_error

REDACTED = "***"


class CommandRunner:
    """Runs external commands with consistent error handling and secret redaction."""

    def __init__(
        self,
        logger,
        default_timeout: Optional[float] = None,
        secrets: Optional[Iterable[str]] = None,
    ):
        self.logger = logger
        self.default_timeout = default_timeout
        self.secrets = [secret for secret in (secrets or []) if secret]

    def redact(self, text: str) -> str:
        for secret in self.secrets:
            text = text.replace(secret, REDACTED)
        return text

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
        input_text: Optional[str] = None,
        cwd: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = self.redact(" ".join(cmd))
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        process_env = None
        if env:
            process_env = dict(os.environ)
            process_env.update(env)

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
                env=process_env,
                input=input_text,
                cwd=cwd,
            )
        except FileNotFoundError as exc:
            raise ProvisionerError(actionable_error("command_not_found", command=cmd[0])) from exc
        except subprocess.TimeoutExpired as exc:
            raise ProvisionerError(
                f"Command timed out after {effective_timeout}s: {cmd_str}"
            ) from exc
        except Exception as exc:
            raise ProvisionerError(
                f"Failed to execute command: {cmd_str}. {self.redact(str(exc))}"
            ) from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", self.redact(result.stdout.strip()))

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{self.redact(stderr)}"

        if check:
            raise ProvisionerError(message)

        self.logger.warning(message)
        return result
