"""Public declaration API: resource descriptors and the Service handle."""

from berth.api.descriptors import Container, Process, ResourceDescriptor
from berth.api.service import Service, ServiceLogs, ServiceState

__all__ = [
    "Container",
    "Process",
    "ResourceDescriptor",
    "Service",
    "ServiceLogs",
    "ServiceState",
]
