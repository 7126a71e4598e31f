"""
Compose descriptor rendering.

Each node becomes one service named after its label, with its generated
config mounted read-only and its API and testing ports published on
fixed host ports. A Prometheus sidecar scrapes every node.
"""

from __future__ import annotations

from typing import Any, Sequence

from chainscale.topology.constants import DEFAULT_PROMETHEUS_HTTP_PORT
from chainscale.topology.generation import GeneratedTopology, NodePorts

CONFIG_MOUNT_PATH = "/etc/chainscale/config.json"
PROMETHEUS_SERVICE = "prometheus"
PROMETHEUS_CONFIG = "prometheus.json"
NETWORK_NAME = "chainscale"


def compose_project_name(deployment_id: str) -> str:
    return f"chainscale-{deployment_id}"


def node_config_filename(label: str) -> str:
    return f"{label}.json"


def render_prometheus_config(topology: GeneratedTopology, scrape_interval: str = "5s") -> dict[str, Any]:
    return {
        "global": {
            "scrape_interval": scrape_interval,
            "evaluation_interval": scrape_interval,
        },
        "scrape_configs": [
            {
                "job_name": "chainscale",
                "metrics_path": "/metrics",
                "static_configs": [
                    {
                        "targets": [
                            f"{config.label}:{config.api_port}"
                            for config in topology.nodes()
                        ],
                    }
                ],
            }
        ],
    }


def render_compose(
    topology: GeneratedTopology,
    image: str,
    host_ports: Sequence[NodePorts],
    prometheus_image: str,
    prometheus_port: int,
    deployment_id: str,
) -> dict[str, Any]:
    services: dict[str, Any] = {}

    for config, published in zip(topology.nodes(), host_ports):
        services[config.label] = {
            "image": image,
            "hostname": config.label,
            "command": ["--config", CONFIG_MOUNT_PATH],
            "volumes": [
                f"./{node_config_filename(config.label)}:{CONFIG_MOUNT_PATH}:ro",
            ],
            "ports": [
                f"{published.api}:{config.api_port}",
                f"{published.testing}:{config.testing_http_port}",
            ],
            "labels": {
                "chainscale.deployment": deployment_id,
                "chainscale.role": config.role.value,
            },
            "networks": [NETWORK_NAME],
        }

    services[PROMETHEUS_SERVICE] = {
        "image": prometheus_image,
        "command": [f"--config.file=/etc/prometheus/{PROMETHEUS_CONFIG}"],
        "volumes": [
            f"./{PROMETHEUS_CONFIG}:/etc/prometheus/{PROMETHEUS_CONFIG}:ro",
        ],
        "ports": [f"{prometheus_port}:{DEFAULT_PROMETHEUS_HTTP_PORT}"],
        "labels": {
            "chainscale.deployment": deployment_id,
        },
        "networks": [NETWORK_NAME],
        "depends_on": [config.label for config in topology.nodes()],
    }

    return {
        "name": compose_project_name(deployment_id),
        "services": services,
        "networks": {
            NETWORK_NAME: {},
        },
    }
