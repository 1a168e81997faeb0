"""Defaults and fixed names shared across rdpprovisioner services."""

DIR_MODE = 0o755
FILE_MODE = 0o644

DEFAULT_TARGET_USER = "ciuser"
DEFAULT_USER_PASSWORD = "password"
DEFAULT_RDP_PORT = 3389
DEFAULT_GUAC_PORT = 8080
DEFAULT_INSTALL_DIR = "/opt/ubuntu-rdp-setup"
DEFAULT_BUILD_DIR = "/opt/guacamole-build"
DEFAULT_STACK_DIR = "/opt/guacamole"
DEFAULT_DESKTOP = "xfce4"
DEFAULT_GIT_NAME = "GitHub Action Bot"
DEFAULT_GIT_EMAIL = "actions@github.com"
DEFAULT_ADMIN_USER = "guacadmin"
DEFAULT_ADMIN_PASSWORD = "guacadmin"
DEFAULT_DB_PASSWORD = "some_password"
DEFAULT_VERIFY_DELAY_SECONDS = 10.0

SSH_PORT = 22
ADMIN_GROUP = "sudo"
LOGIN_SHELL = "/bin/bash"
MANAGED_SERVICES = ("ssh", "xrdp")

XRDP_INI_PATH = "/etc/xrdp/xrdp.ini"

GUAC_BASE_IMAGE = "guacamole/guacamole:latest"
GUACD_IMAGE = "guacamole/guacd:latest"
POSTGRES_IMAGE = "postgres:15"
CUSTOM_IMAGE_TAG = "guac-custom:latest"
GUAC_INTERNAL_PORT = 8080
GUAC_WEB_PATH = "/guacamole/"
GUAC_INITDB_SCRIPT = "/opt/guacamole/bin/initdb.sh"

GUACD_CONTAINER = "guacd"
DB_CONTAINER = "guac-db"
GUAC_CONTAINER = "guacamole"

DB_NAME = "guacamole_db"
DB_USER = "guac_db_user"

SSH_CONNECTION_NAME = "Local SSH"
SSH_CONNECTION_HOST = "localhost"
SSH_CONNECTION_MAX = 5

SEED_FILE = "initdb.sql"
SCHEMA_FILE = "schema.sql"
DOCKERFILE = "Dockerfile"
COMPOSE_FILE = "docker-compose.yml"
MANIFEST_FILE = "run-manifest.json"
README_FILE = "README.md"
CONFIG_SNAPSHOT_FILE = "provision.yml"

GITHUB_HOST = "github.com"
GIT_BRANCH = "main"
COMMIT_MESSAGE = "CI build: Ubuntu RDP + Guacamole with default SSH connection"
