"""
Kubernetes manifest rendering.

Every node gets a ConfigMap with its generated config, a single-replica
Deployment mounting it, and a ClusterIP Service named after the node so
peers resolve each other by label inside the namespace.
"""

from __future__ import annotations

from typing import Any

import msgspec

from chainscale.topology.generation import GeneratedNodeConfig, GeneratedTopology

CONFIG_MOUNT_DIR = "/etc/chainscale"
APP_LABEL = "chainscale"


def namespace_name(deployment_id: str) -> str:
    return f"chainscale-{deployment_id}"


def _labels(config: GeneratedNodeConfig, deployment_id: str) -> dict[str, str]:
    return {
        "app": APP_LABEL,
        "chainscale/node": config.label,
        "chainscale/role": config.role.value,
        "chainscale/deployment": deployment_id,
    }


def render_namespace(namespace: str, deployment_id: str) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {
            "name": namespace,
            "labels": {
                "app": APP_LABEL,
                "chainscale/deployment": deployment_id,
            },
        },
    }


def render_config_map(config: GeneratedNodeConfig, namespace: str, deployment_id: str) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {
            "name": f"{config.label}-config",
            "namespace": namespace,
            "labels": _labels(config, deployment_id),
        },
        "data": {
            "config.json": msgspec.json.encode(config.to_config()).decode(),
        },
    }


def render_deployment(
    config: GeneratedNodeConfig,
    namespace: str,
    image: str,
    deployment_id: str,
) -> dict[str, Any]:
    labels = _labels(config, deployment_id)
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": config.label,
            "namespace": namespace,
            "labels": labels,
        },
        "spec": {
            "replicas": 1,
            "selector": {
                "matchLabels": {"chainscale/node": config.label},
            },
            "template": {
                "metadata": {"labels": labels},
                "spec": {
                    "containers": [
                        {
                            "name": "node",
                            "image": image,
                            "args": ["--config", f"{CONFIG_MOUNT_DIR}/config.json"],
                            "ports": [
                                {"name": "api", "containerPort": config.api_port},
                                {"name": "testing", "containerPort": config.testing_http_port},
                                {"name": "network", "containerPort": config.network_port, "protocol": "UDP"},
                            ],
                            "readinessProbe": {
                                "httpGet": {
                                    "path": "/cryptarchia/info",
                                    "port": "api",
                                },
                                "periodSeconds": 2,
                            },
                            "volumeMounts": [
                                {"name": "config", "mountPath": CONFIG_MOUNT_DIR},
                            ],
                        }
                    ],
                    "volumes": [
                        {
                            "name": "config",
                            "configMap": {"name": f"{config.label}-config"},
                        }
                    ],
                },
            },
        },
    }


def render_service(config: GeneratedNodeConfig, namespace: str, deployment_id: str) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {
            "name": config.label,
            "namespace": namespace,
            "labels": _labels(config, deployment_id),
        },
        "spec": {
            "selector": {"chainscale/node": config.label},
            "ports": [
                {"name": "api", "port": config.api_port, "targetPort": "api"},
                {"name": "testing", "port": config.testing_http_port, "targetPort": "testing"},
                {"name": "network", "port": config.network_port, "targetPort": "network", "protocol": "UDP"},
            ],
        },
    }


def render_manifests(
    topology: GeneratedTopology,
    namespace: str,
    image: str,
    deployment_id: str,
) -> dict[str, Any]:
    items: list[dict[str, Any]] = [render_namespace(namespace, deployment_id)]
    for config in topology.nodes():
        items.append(render_config_map(config, namespace, deployment_id))
        items.append(render_deployment(config, namespace, image, deployment_id))
        items.append(render_service(config, namespace, deployment_id))

    return {
        "apiVersion": "v1",
        "kind": "List",
        "items": items,
    }
