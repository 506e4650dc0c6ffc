"""Human-readable endpoint summaries printed after each command."""

from __future__ import annotations

from typing import Optional

from .config import DeployConfig, minio_endpoint, network_binding


def web_urls(config: DeployConfig, host_ip: Optional[str]) -> list[str]:
    ports = config.ports
    lines = [f"  Local access: http://localhost:{ports.web_photos}"]
    if not config.network.expose:
        lines.append(f"  Albums: http://localhost:{ports.web_albums}")
        lines.append(f"  API: http://localhost:{ports.api}")
    elif host_ip:
        lines.append(f"  Network access: http://{host_ip}:{ports.web_photos}")
        lines.append(f"  Albums: http://{host_ip}:{ports.web_albums}")
        lines.append(f"  API: http://{host_ip}:{ports.api}")
    else:
        lines.append(
            f"  Network access: http://{network_binding(config)}:{ports.web_photos} (check your machine's IP)"
        )
    return lines


def mobile_api_endpoint(config: DeployConfig, host_ip: Optional[str]) -> str:
    """Server endpoint to enter in the mobile apps."""
    if not config.network.expose:
        return f"http://localhost:{config.ports.api}"
    return f"http://{host_ip or config.network.interface}:{config.ports.api}"


def describe_endpoints(config: DeployConfig, host_ip: Optional[str], heading: str = "Service endpoints:") -> list[str]:
    return [
        heading,
        *web_urls(config, host_ip),
        "",
        "Mobile App Server Endpoint:",
        f"  {mobile_api_endpoint(config, host_ip)}",
        "",
        "MinIO Storage Endpoint:",
        f"  http://{minio_endpoint(config, host_ip)} (for mobile app file access)",
    ]
