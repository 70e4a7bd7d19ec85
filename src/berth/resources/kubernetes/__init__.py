"""Kubernetes backend: kubectl client, deployment resource and namespace extension."""

from berth.resources.kubernetes.client import KubectlClient
from berth.resources.kubernetes.deployment import (
    CLIENT_KEY,
    KubernetesContainerBinding,
    KubernetesDeploymentResource,
    build_deployment,
    load_template,
)
from berth.resources.kubernetes.extension import KubernetesExtension

__all__ = [
    "CLIENT_KEY",
    "KubectlClient",
    "KubernetesContainerBinding",
    "KubernetesDeploymentResource",
    "KubernetesExtension",
    "build_deployment",
    "load_template",
]
