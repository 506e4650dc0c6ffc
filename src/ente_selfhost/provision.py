#!/usr/bin/env python3
"""
Instance provisioning and startup.

Flow for a new instance:
1. Generate credentials
2. Create the instance directory and data directories
3. Render compose.yaml and museum.yaml
4. Optionally start the stack, create buckets and wait for the API

An instance that already exists is started instead of re-provisioned.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional

from .backup import remove_tree
from .buckets import CREATE_BUCKETS_HINT, create_buckets, credentials_from_settings
from .compose import ComposeRunner, check_runtime_dependencies, ensure_running, runner_for
from .config import DeployConfig, detect_host_ip
from .credentials import Credentials, generate_credentials
from .endpoints import describe_endpoints, web_urls
from .errors import InstanceNotFoundError, PartialInstanceError
from .instance import Instance, InstanceState, resolve_target_dir
from .output import info, plain, success, warn
from .readiness import http_probe, museum_ping_url, poll_with_settings
from .render import materialize
from .security import apply_container_labels, enable_container_cgroup_boolean


logger = logging.getLogger(__name__)

Prompt = Callable[[str], str]


def _compose_label(config: DeployConfig) -> str:
    return " ".join(config.compose.command)


def host_ip_for(config: DeployConfig) -> Optional[str]:
    """Detected host IP, only looked up when services are exposed."""
    return detect_host_ip() if config.network.expose else None


def print_endpoints(config: DeployConfig, host_ip: Optional[str], heading: str = "Service endpoints:") -> None:
    plain()
    for line in describe_endpoints(config, host_ip, heading):
        plain(line)


def start_existing(instance: Instance, config: DeployConfig, runner: ComposeRunner) -> int:
    """Start an already provisioned instance without touching its files."""
    ok = ensure_running(runner)
    print_endpoints(config, host_ip_for(config))
    return 0 if ok else 1


def provision_instance(instance: Instance, config: DeployConfig, host_ip: Optional[str]) -> Credentials:
    """
    Create the directory skeleton and both documents for a new instance.

    A failure after the instance directory was created removes it again.
    """
    credentials = generate_credentials(config.secrets, config.minio.user_prefix)

    instance.root.parent.mkdir(parents=True, exist_ok=True)
    instance.root.mkdir()
    success(f"Created directory {instance.root}")
    try:
        for path in instance.data_dirs():
            path.mkdir()
            os.chmod(path, config.instance.mode)
        success("Created persistent data directories with correct permissions")

        cgroup = enable_container_cgroup_boolean()
        if cgroup is not None:
            info("Setting up SELinux for Podman containers...")
            if not cgroup.applied:
                logger.debug(f"{cgroup.step} failed: {cgroup.detail}")

        materialize(instance, config, credentials, host_ip)
    except BaseException:
        warn(f"Setup failed, removing incomplete {instance.root}")
        remove_tree(instance.root)
        raise
    success(f"Created {instance.compose_file.name}")
    success(f"Created {instance.settings_file.name}")

    for advisory in apply_container_labels(instance.data_dirs() + instance.documents()):
        if not advisory.applied:
            logger.debug(f"{advisory.step} failed: {advisory.detail}")

    return credentials


def confirm_start(assume_yes: bool, prompt: Prompt = input) -> bool:
    if assume_yes:
        info("Automatically starting Ente (non-interactive mode)...")
        return True
    try:
        choice = prompt("Do you want to start Ente? (y/n) [n]: ")
    except EOFError:
        return False
    return choice.strip() in ("y", "Y")


def launch_and_wait(
    instance: Instance,
    config: DeployConfig,
    runner: ComposeRunner,
    credentials: Credentials,
    host_ip: Optional[str],
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Start the stack in the background, then gate on MinIO and the Museum API.

    Readiness timeouts are reported, not raised.
    """
    compose = _compose_label(config)
    plain()
    info("Starting services in background (detached mode)...")
    plain("After the cluster has started, you can access Ente at:")
    for line in web_urls(config, host_ip):
        plain(line)
    plain(f"To view logs: {compose} logs -f")
    plain(f"To stop services: {compose} down")
    plain()

    proc = runner.up_background()
    sleep(config.compose.startup_grace_seconds)

    info("Waiting for services to be ready...")
    if create_buckets(runner, credentials, config):
        success("MinIO buckets created")
    else:
        warn("MinIO bucket creation failed", hint=CREATE_BUCKETS_HINT)

    api = poll_with_settings(
        http_probe(museum_ping_url(config)),
        config,
        "Museum API",
        f"You can check logs with: {compose} logs -f",
    )
    if api.ready:
        success("All services are ready and responding")
    else:
        warn("Museum API not ready, but services are running")

    returncode = proc.poll()
    if returncode is None:
        logger.debug(f"compose up (pid {proc.pid}) still running")
    else:
        logger.debug(f"compose up exited with {returncode}")

    print_endpoints(config, host_ip)
    plain()
    plain("To get verification codes:")
    plain(f"  cd {instance.root}")
    plain(f"  {compose} logs museum 2>&1 | grep 'Verification code'")
    plain("  # Or follow logs in real-time:")
    plain(f"  {compose} logs -f museum")


def print_manual_start(instance: Instance, config: DeployConfig, host_ip: Optional[str]) -> None:
    compose = _compose_label(config)
    plain()
    plain("To start the cluster:")
    plain(f"  cd {instance.root}")
    plain(f"  {compose} up -d    # Start in background")
    plain(f"  {compose} logs -f  # View logs")
    plain(f"  {compose} down     # Stop services")
    print_endpoints(config, host_ip, heading="After the cluster has started, you can access Ente at:")


def setup(
    config: DeployConfig,
    target_dir: Optional[str],
    assume_yes: bool,
    prompt: Prompt = input,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Provision a new instance under ``target_dir`` or start the existing one.

    A directory that exists but lacks some members is refused rather than
    repaired or overwritten.
    """
    instance = Instance.in_directory(resolve_target_dir(target_dir), config.instance.name)
    runner = runner_for(instance, config.compose.command)
    check_runtime_dependencies(runner)

    state = instance.state()
    if state is InstanceState.COMPLETE:
        warn(f"'{instance.root}' directory already exists.")
        info("Starting existing instance instead of creating new one...")
        return start_existing(instance, config, runner)
    if state is InstanceState.PARTIAL:
        raise PartialInstanceError(instance.root, instance.missing_members())

    info(f"Setting up Ente instance in: {instance.root.parent}")
    info(f"Instance will be created at: {instance.root}")

    host_ip = host_ip_for(config)
    credentials = provision_instance(instance, config, host_ip)
    plain()

    if confirm_start(assume_yes, prompt):
        launch_and_wait(instance, config, runner, credentials, host_ip, sleep=sleep)
    else:
        print_manual_start(instance, config, host_ip)
    return 0


def create_buckets_for_existing(config: DeployConfig, base_dir: Optional[Path] = None) -> int:
    """Create buckets for the instance in ``base_dir`` (default: current directory)."""
    instance = Instance.in_directory(base_dir or Path.cwd(), config.instance.name)
    if not instance.exists():
        raise InstanceNotFoundError(instance.root)
    if not instance.compose_file.is_file():
        raise InstanceNotFoundError(instance.compose_file, f"found in '{instance.root}'")

    runner = runner_for(instance, config.compose.command)
    check_runtime_dependencies(runner)
    credentials = credentials_from_settings(instance.settings_file)

    info("Creating MinIO buckets for existing instance...")
    if not create_buckets(runner, credentials, config):
        return 1
    plain()
    plain("You can now try uploading files again.")
    return 0
