#!/usr/bin/env python3
"""
Render the service-topology (compose.yaml) and application-settings
(museum.yaml) documents for an instance.

Both documents come from Jinja2 templates shipped in the package. Rendering
is strict: a name missing from the context is an error, never an empty string.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Optional

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from .config import DeployConfig, minio_endpoint, network_binding
from .config_constants import (
    ACCOUNTS_APP_PORT,
    CAST_APP_PORT,
    COMPOSE_TEMPLATE,
    SETTINGS_TEMPLATE,
)
from .credentials import Credentials
from .instance import Instance


logger = logging.getLogger(__name__)

_ENVIRONMENT: Optional[Environment] = None


def get_environment() -> Environment:
    global _ENVIRONMENT
    if _ENVIRONMENT is None:
        _ENVIRONMENT = Environment(
            loader=PackageLoader("ente_selfhost", "templates"),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
    return _ENVIRONMENT


def build_template_context(config: DeployConfig, credentials: Credentials, host_ip: Optional[str]) -> dict:
    """Flatten config, secrets and derived network values for the templates."""
    context = config.to_dict()
    context.update(
        credentials=dataclasses.asdict(credentials),
        network_binding=network_binding(config),
        minio_endpoint=minio_endpoint(config, host_ip),
        cors_enabled="true" if config.cors.enabled else "false",
        cast_port=CAST_APP_PORT,
        accounts_port=ACCOUNTS_APP_PORT,
    )
    return context


def render_template(template_name: str, context: dict) -> str:
    logger.debug(f"Rendering Jinja2 template: {template_name}")
    try:
        rendered = get_environment().get_template(template_name).render(**context)
    except TemplateError as e:
        logger.error(f"Failed to render template {template_name}: {e}")
        raise
    logger.debug(f"  Rendered output size: {len(rendered)} bytes")
    return rendered


def render_compose_document(config: DeployConfig, credentials: Credentials, host_ip: Optional[str]) -> str:
    return render_template(COMPOSE_TEMPLATE, build_template_context(config, credentials, host_ip))


def render_settings_document(config: DeployConfig, credentials: Credentials, host_ip: Optional[str]) -> str:
    return render_template(SETTINGS_TEMPLATE, build_template_context(config, credentials, host_ip))


def materialize(instance: Instance, config: DeployConfig, credentials: Credentials, host_ip: Optional[str]) -> None:
    """
    Write both documents into the instance directory.

    Existing files are overwritten; refusing to re-provision an existing
    instance is the caller's job.
    """
    instance.compose_file.write_text(
        render_compose_document(config, credentials, host_ip), encoding="utf-8"
    )
    logger.debug(f"Wrote {instance.compose_file}")
    instance.settings_file.write_text(
        render_settings_document(config, credentials, host_ip), encoding="utf-8"
    )
    logger.debug(f"Wrote {instance.settings_file}")
