"""
Shared fixtures: Kubernetes model objects for nodes and pods
"""

import pytest
from unittest.mock import Mock
from kubernetes import client

from spot_rescheduler.errors import QueryError

SPOT_LABELS = {'kubernetes.io/role': 'spot-worker'}
ON_DEMAND_LABELS = {'kubernetes.io/role': 'worker'}


def _make_node(name, labels=None, allocatable_cpu='4'):
    allocatable = {'cpu': allocatable_cpu, 'memory': '16Gi'} if allocatable_cpu is not None else None
    return client.V1Node(
        metadata=client.V1ObjectMeta(name=name, labels=labels),
        status=client.V1NodeStatus(allocatable=allocatable)
    )


def _make_pod(name, cpu=('500m',), priority=0, namespace='default', node_name=None):
    containers = []
    for i, request in enumerate(cpu):
        requests = {'cpu': request} if request is not None else None
        containers.append(client.V1Container(
            name=f'{name}-{i}',
            resources=client.V1ResourceRequirements(requests=requests)
        ))
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace),
        spec=client.V1PodSpec(containers=containers, priority=priority, node_name=node_name)
    )


@pytest.fixture
def make_node():
    """Factory for V1Node objects"""
    return _make_node


@pytest.fixture
def make_pod():
    """Factory for V1Pod objects"""
    return _make_pod


@pytest.fixture
def pod_lister():
    """
    Mock PodLister backed by a dict of node name -> pods.

    Assign ``pod_lister.pods[name] = [...]`` in a test; unknown nodes have no
    pods and ``pod_lister.failing`` names nodes whose query fails.
    """
    lister = Mock()
    lister.pods = {}
    lister.failing = set()

    def list_pods_on_node(node):
        name = node.metadata.name
        if name in lister.failing:
            raise QueryError(f"Failed to list pods on node {name}: connection refused")
        return list(lister.pods.get(name, []))

    lister.list_pods_on_node.side_effect = list_pods_on_node
    return lister
