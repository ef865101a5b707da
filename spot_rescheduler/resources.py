"""
CPU Accountant
Container CPU requests summed per pod and per node, in millicores
"""

import math
from typing import Iterable

from kubernetes.utils import parse_quantity


def to_millicores(quantity) -> int:
    """
    Convert a CPU quantity ('2', '500m', '0.25', '100n') to millicores.

    Fractions of a millicore round up, matching Kubernetes MilliValue().
    """
    if quantity is None or quantity == "":
        return 0
    return int(math.ceil(parse_quantity(quantity) * 1000))


def pod_cpu_requests(pod) -> int:
    """Total CPU requested by all containers of a pod (millicores)"""
    spec = getattr(pod, "spec", None)
    if spec is None or not spec.containers:
        return 0

    total = 0
    for container in spec.containers:
        # Containers without a CPU request count as zero
        if container.resources and container.resources.requests:
            total += to_millicores(container.resources.requests.get("cpu"))
    return total


def calculate_requested_cpu(pods: Iterable) -> int:
    """Total CPU requested by a collection of pods (millicores)"""
    return sum(pod_cpu_requests(pod) for pod in pods)


def allocatable_cpu(node) -> int:
    """Allocatable CPU of a node (millicores), 0 when not reported"""
    status = getattr(node, "status", None)
    if status is None or not status.allocatable:
        return 0
    return to_millicores(status.allocatable.get("cpu"))
