import logging
import os

import click
from rich.logging import RichHandler

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
from .core import Provisioner, ProvisionerError
from .models import ProvisionConfig
from .services.config_loader import ConfigLoader

DEFAULT_CONFIG_FILE = ".rdpprovisioner.yml"
PORT = click.IntRange(1, 65535)


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--target-user", envvar="TARGET_USER", help=f"Local login account (default: {DEFAULT_TARGET_USER}).")
@click.option(
    "--user-password",
    envvar="TARGET_PASSWORD",
    help="Password for a newly created account. Environment only in CI.",
)
@click.option("--rdp-port", envvar="RDP_PORT", type=PORT, help=f"XRDP port (default: {DEFAULT_RDP_PORT}).")
@click.option(
    "--guac-port",
    envvar="GUAC_PORT",
    type=PORT,
    help=f"Host port for the Guacamole web UI (default: {DEFAULT_GUAC_PORT}).",
)
@click.option("--install-dir", envvar="INSTALL_DIR", help="Directory where artifacts are committed.")
@click.option("--build-dir", envvar="GUAC_BUILD_DIR", help="Build context for the custom Guacamole image.")
@click.option("--stack-dir", envvar="GUAC_DIR", help="Directory holding the compose file and run manifest.")
@click.option("--desktop", envvar="UBUNTU_DESKTOP", help=f"Desktop package (default: {DEFAULT_DESKTOP}).")
@click.option(
    "--create-github",
    envvar="CREATE_GITHUB",
    type=click.BOOL,
    default=None,
    help="Push the artifacts repository to GitHub (true/false).",
)
@click.option("--github-repo", envvar="GITHUB_REPO", help="GitHub repository as owner/name.")
@click.option("--github-token", envvar="GITHUB_TOKEN", help="GitHub token used only for the push.")
@click.option("--git-name", envvar="GIT_NAME", help="Commit author name.")
@click.option("--git-email", envvar="GIT_EMAIL", help="Commit author email.")
@click.option("--admin-user", envvar="GUAC_ADMIN_USER", help="Guacamole administrator login.")
@click.option("--admin-password", envvar="GUAC_ADMIN_PASSWORD", help="Guacamole administrator password.")
@click.option("--db-password", envvar="GUAC_DB_PASSWORD", help="PostgreSQL password for Guacamole.")
@click.option(
    "--verify-delay",
    "verify_delay_seconds",
    type=click.FloatRange(min=0),
    default=None,
    help=f"Seconds to wait before checking the stack (default: {DEFAULT_VERIFY_DELAY_SECONDS:g}).",
)
@click.option(
    "--init-schema/--no-init-schema",
    default=None,
    help="Load the Guacamole PostgreSQL schema before the seed (default: enabled).",
)
@click.option("--manifest-file", type=click.Path(), help="Path of the run manifest JSON.")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "--dry-run",
    is_flag=True,
    default=None,
    help="Print the provisioning plan without running commands or writing files.",
)
def main(
    config,
    target_user,
    user_password,
    rdp_port,
    guac_port,
    install_dir,
    build_dir,
    stack_dir,
    desktop,
    create_github,
    github_repo,
    github_token,
    git_name,
    git_email,
    admin_user,
    admin_password,
    db_password,
    verify_delay_seconds,
    init_schema,
    manifest_file,
    verbose,
    log_file,
    dry_run,
):
    """Provision an Ubuntu CI host with XRDP and a preloaded Guacamole gateway."""
    logger = logging.getLogger("rdpprovisioner")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except ProvisionerError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    dry_run = bool(dry_run)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    try:
        settings = ProvisionConfig(
            target_user=_resolve_option(target_user, config_values, "target_user", DEFAULT_TARGET_USER),
            user_password=user_password or DEFAULT_USER_PASSWORD,
            rdp_port=int(_resolve_option(rdp_port, config_values, "rdp_port", DEFAULT_RDP_PORT)),
            guac_port=int(_resolve_option(guac_port, config_values, "guac_port", DEFAULT_GUAC_PORT)),
            install_dir=_resolve_option(install_dir, config_values, "install_dir", DEFAULT_INSTALL_DIR),
            build_dir=_resolve_option(build_dir, config_values, "build_dir", DEFAULT_BUILD_DIR),
            stack_dir=_resolve_option(stack_dir, config_values, "stack_dir", DEFAULT_STACK_DIR),
            desktop=_resolve_option(desktop, config_values, "desktop", DEFAULT_DESKTOP),
            create_github=bool(_resolve_option(create_github, config_values, "create_github", False)),
            github_repo=_resolve_option(github_repo, config_values, "github_repo"),
            github_token=github_token or None,
            git_name=_resolve_option(git_name, config_values, "git_name", DEFAULT_GIT_NAME),
            git_email=_resolve_option(git_email, config_values, "git_email", DEFAULT_GIT_EMAIL),
            admin_user=_resolve_option(admin_user, config_values, "admin_user", DEFAULT_ADMIN_USER),
            admin_password=admin_password or DEFAULT_ADMIN_PASSWORD,
            db_password=db_password or DEFAULT_DB_PASSWORD,
            verify_delay_seconds=float(
                _resolve_option(
                    verify_delay_seconds,
                    config_values,
                    "verify_delay_seconds",
                    DEFAULT_VERIFY_DELAY_SECONDS,
                )
            ),
            init_schema=bool(_resolve_option(init_schema, config_values, "init_schema", True)),
        )
        provisioner = Provisioner(
            config=settings,
            verbose=verbose,
            dry_run=dry_run,
            manifest_file=manifest_file,
        )
    except (ProvisionerError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(provisioner.run())


if __name__ == "__main__":
    main()
