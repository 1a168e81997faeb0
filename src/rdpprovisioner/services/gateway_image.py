"""Guacamole image build service for rdpprovisioner."""

import os
from typing import Callable

from rdpprovisioner.constants import (
    CUSTOM_IMAGE_TAG,
    DOCKERFILE,
    GUAC_BASE_IMAGE,
    GUAC_INITDB_SCRIPT,
    SCHEMA_FILE,
    SEED_FILE,
    SSH_CONNECTION_HOST,
    SSH_CONNECTION_MAX,
    SSH_CONNECTION_NAME,
    SSH_PORT,
)
from rdpprovisioner.errors import ProvisionerError


def sql_literal(value) -> str:
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


class GatewayImageService:
    """Writes the SQL seed and image descriptor, then builds the gateway image."""

    SEED_IMAGE_PATH = "/initdb/initdb.sql"
    ADMIN_SYSTEM_PERMISSIONS = (
        "ADMINISTER",
        "CREATE_CONNECTION",
        "CREATE_CONNECTION_GROUP",
        "CREATE_SHARING_PROFILE",
        "CREATE_USER",
        "CREATE_USER_GROUP",
    )

    def __init__(self, logger, console, filesystem_service):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service

    def build_seed_sql(self, admin_user: str, admin_password: str, ssh_user: str) -> str:
        """PostgreSQL seed with one admin account and one SSH connection.

        The salt is random bytes drawn by PostgreSQL while the seed loads and the
        hash is ``sha256(password || upper(hex(salt)))``, the scheme Guacamole's
        JDBC authentication expects. Every statement tolerates rows that already
        exist so the seed can follow the stock schema, which ships its own admin.
        """
        admin = sql_literal(admin_user)
        password = sql_literal(admin_password)
        connection = sql_literal(SSH_CONNECTION_NAME)
        permissions = ", ".join(f"({sql_literal(name)})" for name in self.ADMIN_SYSTEM_PERMISSIONS)
        parameters = ", ".join(
            f"({sql_literal(name)}, {sql_literal(value)})"
            for name, value in (
                ("hostname", SSH_CONNECTION_HOST),
                ("port", SSH_PORT),
                ("username", ssh_user),
            )
        )

        return f"""
-- Administrative account
INSERT INTO guacamole_entity (name, type)
VALUES ({admin}, 'USER')
ON CONFLICT (type, name) DO NOTHING;

INSERT INTO guacamole_user (entity_id, password_hash, password_salt, password_date)
SELECT entity.entity_id,
       sha256(convert_to({password} || upper(encode(seed.salt, 'hex')), 'UTF8')),
       seed.salt,
       CURRENT_TIMESTAMP
FROM guacamole_entity AS entity,
     (SELECT decode(md5(random()::text) || md5(clock_timestamp()::text), 'hex') AS salt) AS seed
WHERE entity.name = {admin} AND entity.type = 'USER'
ON CONFLICT (entity_id) DO UPDATE
SET password_hash = EXCLUDED.password_hash,
    password_salt = EXCLUDED.password_salt,
    password_date = EXCLUDED.password_date;

INSERT INTO guacamole_system_permission (entity_id, permission)
SELECT entity.entity_id, granted.permission::guacamole_system_permission_type
FROM guacamole_entity AS entity,
     (VALUES {permissions}) AS granted (permission)
WHERE entity.name = {admin} AND entity.type = 'USER'
ON CONFLICT DO NOTHING;

-- SSH connection to the local host
INSERT INTO guacamole_connection (connection_name, protocol, max_connections, max_connections_per_user)
SELECT {connection}, 'ssh', {SSH_CONNECTION_MAX}, {SSH_CONNECTION_MAX}
WHERE NOT EXISTS (
    SELECT 1 FROM guacamole_connection
    WHERE connection_name = {connection} AND parent_id IS NULL
);

INSERT INTO guacamole_connection_parameter (connection_id, parameter_name, parameter_value)
SELECT connection.connection_id, parameter.name, parameter.value
FROM guacamole_connection AS connection,
     (VALUES {parameters}) AS parameter (name, value)
WHERE connection.connection_name = {connection} AND connection.parent_id IS NULL
ON CONFLICT (connection_id, parameter_name) DO UPDATE
SET parameter_value = EXCLUDED.parameter_value;

INSERT INTO guacamole_connection_permission (entity_id, connection_id, permission)
SELECT entity.entity_id, connection.connection_id, 'READ'::guacamole_object_permission_type
FROM guacamole_entity AS entity, guacamole_connection AS connection
WHERE entity.name = {admin} AND entity.type = 'USER'
  AND connection.connection_name = {connection} AND connection.parent_id IS NULL
ON CONFLICT DO NOTHING;
""".strip() + "\n"

    def build_dockerfile(self) -> str:
        return f"""
FROM {GUAC_BASE_IMAGE}
COPY {SEED_FILE} {self.SEED_IMAGE_PATH}
""".strip() + "\n"

    def write_build_context(
        self,
        build_dir: str,
        admin_user: str,
        admin_password: str,
        ssh_user: str,
    ):
        self.filesystem_service.ensure_dir(build_dir)
        self.filesystem_service.write_text(
            os.path.join(build_dir, SEED_FILE),
            self.build_seed_sql(admin_user, admin_password, ssh_user),
        )
        self.filesystem_service.write_text(
            os.path.join(build_dir, DOCKERFILE),
            self.build_dockerfile(),
        )

    def dump_schema(self, build_dir: str, run_cmd: Callable) -> str:
        """Exports the PostgreSQL schema that ships inside the base image."""
        self.console.print("[blue]Exporting Guacamole database schema...[/blue]")
        result = run_cmd(
            ["docker", "run", "--rm", GUAC_BASE_IMAGE, GUAC_INITDB_SCRIPT, "--postgresql"],
            capture_output=True,
        )
        schema = result.stdout or ""
        if "CREATE TABLE" not in schema:
            raise ProvisionerError(
                f"The schema exported from {GUAC_BASE_IMAGE} looks empty. "
                "Check that the image provides initdb.sh."
            )

        schema_path = os.path.join(build_dir, SCHEMA_FILE)
        self.filesystem_service.write_text(schema_path, schema)
        return schema_path

    def build_image(self, build_dir: str, run_cmd: Callable, tag: str = CUSTOM_IMAGE_TAG):
        self.console.print(f"[blue]Building image {tag}...[/blue]")
        self.logger.info("Building image %s from %s", tag, build_dir)
        run_cmd(["docker", "build", "-t", tag, build_dir])
        self.console.print(f"[green]Image {tag} built.[/green]")
