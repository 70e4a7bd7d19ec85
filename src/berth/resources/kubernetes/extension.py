"""Lifecycle extension that gives every kubernetes scenario its own namespace."""

from __future__ import annotations

from typing import Any

from berth.core.logging import get_logger
from berth.extensions.lifecycle import LifecycleExtension
from berth.resources.kubernetes.client import KubectlClient
from berth.resources.kubernetes.deployment import CLIENT_KEY, KUBERNETES_ENVIRONMENT
from berth.scenario.context import ScenarioContext, ServiceContext

logger = get_logger(__name__)


class KubernetesExtension(LifecycleExtension):
    """Namespace per scenario; client handed to services and tests.

    - ``before_all``: create namespace ``<scenario id>``
    - ``update_service_context``: store the client under ``kubernetes.client``
    - ``get_parameter(KubectlClient)``: the same client
    - ``after_all``: delete the namespace unless
      ``BerthSettings.kubernetes_delete_namespace`` is false
    """

    name = "kubernetes"

    def __init__(self) -> None:
        super().__init__()
        self.client: KubectlClient | None = None

    def applies_for(self, scenario: ScenarioContext) -> bool:
        return scenario.environment_name == KUBERNETES_ENVIRONMENT

    def before_all(self, scenario: ScenarioContext) -> None:
        self.client = KubectlClient(scenario.id, scenario.settings.kubectl_path)
        self.client.create_namespace()

    def update_service_context(self, context: ServiceContext) -> None:
        context.put(CLIENT_KEY, self.client)

    def get_parameter(self, requested_type: type) -> Any | None:
        if isinstance(requested_type, type) and issubclass(requested_type, KubectlClient):
            return self.client
        return None

    def after_all(self, scenario: ScenarioContext) -> None:
        if self.client is None:
            return
        if scenario.settings.kubernetes_delete_namespace:
            self.client.delete_namespace()
        else:
            logger.info("namespace_retained", namespace=self.client.namespace)
