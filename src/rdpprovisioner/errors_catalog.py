"""Actionable error catalog for rdpprovisioner."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "not_root": {
        "what": "Provisioning must run as root.",
        "next": "Re-run the command with `sudo` or from a root shell.",
    },
    "command_not_found": {
        "what": "Required command not found: {command}.",
        "next": "Install it (or run on an Ubuntu host) and try again.",
    },
    "compose_missing": {
        "what": "Docker Compose is not available.",
        "next": "Install Docker Compose v2 (`docker compose`) or v1 (`docker-compose`) and try again.",
    },
    "invalid_port": {
        "what": "{label} must be a TCP port between 1 and 65535, got {value}.",
        "next": "Pass a valid port number.",
    },
    "port_conflict": {
        "what": "Ports must be distinct: {ports}.",
        "next": "Choose different values for `--rdp-port` and `--guac-port`.",
    },
    "invalid_delay": {
        "what": "--verify-delay must be zero or a positive number of seconds, got {value}.",
        "next": "Pass a non-negative delay.",
    },
    "invalid_username": {
        "what": "Invalid account name: {value}.",
        "next": "Use lowercase letters, digits, `-` or `_`, starting with a letter or `_`.",
    },
    "invalid_repo": {
        "what": "GitHub repository must look like `owner/name`, got {value}.",
        "next": "Set `GITHUB_REPO` (or `--github-repo`) to `owner/name`.",
    },
    "step_failed": {
        "what": "Step `{step}` failed.",
        "next": "Fix the reported problem and re-run; completed steps are safe to repeat.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
