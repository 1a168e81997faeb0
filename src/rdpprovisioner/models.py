"""Shared domain models for rdpprovisioner."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .constants import (
    DEFAULT_ADMIN_PASSWORD,
    DEFAULT_ADMIN_USER,
    DEFAULT_BUILD_DIR,
    DEFAULT_DB_PASSWORD,
    DEFAULT_DESKTOP,
    DEFAULT_GIT_EMAIL,
    DEFAULT_GIT_NAME,
    DEFAULT_GUAC_PORT,
    DEFAULT_INSTALL_DIR,
    DEFAULT_RDP_PORT,
    DEFAULT_STACK_DIR,
    DEFAULT_TARGET_USER,
    DEFAULT_USER_PASSWORD,
    DEFAULT_VERIFY_DELAY_SECONDS,
)

SECRET_FIELDS = ("user_password", "admin_password", "db_password", "github_token")


@dataclass(frozen=True)
class ProvisionConfig:
    """Every option that shapes a provisioning run."""

    target_user: str = DEFAULT_TARGET_USER
    user_password: str = DEFAULT_USER_PASSWORD
    rdp_port: int = DEFAULT_RDP_PORT
    guac_port: int = DEFAULT_GUAC_PORT
    install_dir: str = DEFAULT_INSTALL_DIR
    build_dir: str = DEFAULT_BUILD_DIR
    stack_dir: str = DEFAULT_STACK_DIR
    desktop: str = DEFAULT_DESKTOP
    create_github: bool = False
    github_repo: Optional[str] = None
    github_token: Optional[str] = None
    git_name: str = DEFAULT_GIT_NAME
    git_email: str = DEFAULT_GIT_EMAIL
    admin_user: str = DEFAULT_ADMIN_USER
    admin_password: str = DEFAULT_ADMIN_PASSWORD
    db_password: str = DEFAULT_DB_PASSWORD
    verify_delay_seconds: float = DEFAULT_VERIFY_DELAY_SECONDS
    init_schema: bool = True

    @property
    def publish_enabled(self) -> bool:
        return bool(self.create_github and self.github_repo and self.github_token)

    def default_credentials_in_use(self) -> List[str]:
        in_use = []
        if self.user_password == DEFAULT_USER_PASSWORD:
            in_use.append("user_password")
        if self.admin_password == DEFAULT_ADMIN_PASSWORD:
            in_use.append("admin_password")
        if self.db_password == DEFAULT_DB_PASSWORD:
            in_use.append("db_password")
        return in_use

    def public_dict(self) -> Dict[str, Any]:
        """Configuration without secrets, suitable for files that get committed."""
        data = asdict(self)
        for name in SECRET_FIELDS:
            data.pop(name, None)
        return data


class FailurePolicy(str, Enum):
    """How a step failure affects the rest of the run."""

    FATAL = "fatal"
    TOLERATED = "tolerated"


@dataclass(frozen=True)
class ProvisionStep:
    name: str
    description: str
    policy: FailurePolicy
    callback: Callable[[], Any]
    enabled: bool = True


@dataclass
class StepResult:
    name: str
    status: str
    error: Optional[str] = None
