"""Configuration loader for rdpprovisioner."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from rdpprovisioner.errors import ProvisionerError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "target_user",
        "rdp_port",
        "guac_port",
        "install_dir",
        "build_dir",
        "stack_dir",
        "desktop",
        "create_github",
        "github_repo",
        "git_name",
        "git_email",
        "admin_user",
        "verify_delay_seconds",
        "init_schema",
        "verbose",
        "log_file",
    }
    BOOLEAN_KEYS = {"create_github", "init_schema", "verbose"}
    # Secrets come from the environment or the command line only.
    SECRET_KEYS = {"user_password", "admin_password", "db_password", "github_token"}

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ProvisionerError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ProvisionerError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ProvisionerError("Config file must contain a YAML mapping at the root.")

        secrets = sorted(set(parsed.keys()) & self.SECRET_KEYS)
        if secrets:
            secret_list = ", ".join(secrets)
            raise ProvisionerError(
                f"Secrets are not read from config files: {secret_list}. "
                "Pass them through environment variables instead."
            )

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ProvisionerError(f"Unknown configuration keys: {unknown_list}")

        not_boolean = sorted(
            key for key in self.BOOLEAN_KEYS & set(parsed.keys()) if not isinstance(parsed[key], bool)
        )
        if not_boolean:
            key_list = ", ".join(not_boolean)
            raise ProvisionerError(
                f"Configuration keys must be unquoted true/false values: {key_list}"
            )

        return parsed
