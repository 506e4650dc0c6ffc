#!/usr/bin/env python3
"""
Filename and layout constants for ente-selfhost.

This is the single place where instance member names are spelled out.
Modules import from here instead of hardcoding strings.
"""

# ============================================================================
# Configuration files
# ============================================================================

# Shipped inside the package
CONFIG_DEFAULTS = 'ente-selfhost.defaults.toml'

# Optional operator override, looked up in the current directory
CONFIG_OVERRIDES = 'ente-selfhost.toml'

# Environment variable pointing at an override file
CONFIG_ENV_VAR = 'ENTE_SELFHOST_CONFIG'

# ============================================================================
# Instance layout
# ============================================================================

COMPOSE_DOCUMENT = 'compose.yaml'
SETTINGS_DOCUMENT = 'museum.yaml'

COMPOSE_TEMPLATE = 'compose.yaml.j2'
SETTINGS_TEMPLATE = 'museum.yaml.j2'

APP_DATA_DIR = 'data'
POSTGRES_DATA_DIR = 'postgres-data'
MINIO_DATA_DIR = 'minio-data'

DATA_DIRS = (APP_DATA_DIR, POSTGRES_DATA_DIR, MINIO_DATA_DIR)
DOCUMENTS = (COMPOSE_DOCUMENT, SETTINGS_DOCUMENT)

# ============================================================================
# Host integration
# ============================================================================

# SELinux type that lets rootless containers read bind mounts
CONTAINER_FILE_LABEL = 'svirt_sandbox_file_t'
CONTAINER_CGROUP_BOOLEAN = 'container_manage_cgroup'

# Address used only to look up the default route source IP
ROUTE_PROBE_ADDRESS = '1.1.1.1'

# Ports the web frontend uses for apps that are not published by the stack
CAST_APP_PORT = 3004
ACCOUNTS_APP_PORT = 3001

