"""
Cluster Client
Lists nodes and the pods bound to them through the Kubernetes API
"""

import logging
from typing import List, Optional, Protocol

import urllib3
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from spot_rescheduler.errors import QueryError
from spot_rescheduler.resilience import RateLimiter

logger = logging.getLogger(__name__)


class PodLister(Protocol):
    """Anything able to list the pods scheduled on a node"""

    def list_pods_on_node(self, node) -> List:
        ...


class KubeClusterClient:
    """List nodes and pods with a CoreV1Api client"""

    def __init__(self, core_v1: client.CoreV1Api, rate_limiter: Optional[RateLimiter] = None):
        self.core_v1 = core_v1
        self.rate_limiter = rate_limiter

    @classmethod
    def from_environment(cls, rate_limiter: Optional[RateLimiter] = None) -> "KubeClusterClient":
        """Create a client from in-cluster config, falling back to kubeconfig"""
        try:
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes config")
        except config.ConfigException:
            config.load_kube_config()
            logger.info("Loaded local Kubernetes config")
        return cls(client.CoreV1Api(), rate_limiter)

    def list_nodes(self) -> List[client.V1Node]:
        """All nodes in the cluster"""
        self._throttle()
        try:
            nodes = self.core_v1.list_node()
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise QueryError(f"Failed to list nodes: {e}") from e

        logger.debug(f"Listed {len(nodes.items)} nodes")
        return list(nodes.items)

    def list_pods_on_node(self, node) -> List[client.V1Pod]:
        """Pods in all namespaces bound to the given node"""
        name = node.metadata.name
        self._throttle()
        try:
            pods = self.core_v1.list_pod_for_all_namespaces(
                field_selector=f'spec.nodeName={name}'
            )
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise QueryError(f"Failed to list pods on node {name}: {e}") from e

        return list(pods.items)

    def _throttle(self):
        if self.rate_limiter:
            self.rate_limiter.acquire()
