"""
Node Map
Spot and on-demand nodes with their pods and CPU headroom, ordered for draining
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from spot_rescheduler.cluster import PodLister
from spot_rescheduler.errors import LoadError
from spot_rescheduler.labels import LabelRule, NodeClass, classify
from spot_rescheduler.resources import allocatable_cpu, calculate_requested_cpu, pod_cpu_requests

logger = logging.getLogger(__name__)

DEFAULT_ON_DEMAND_NODE_LABEL = "kubernetes.io/role=worker"
DEFAULT_SPOT_NODE_LABEL = "kubernetes.io/role=spot-worker"
DEFAULT_PRIORITY_THRESHOLD = 0


@dataclass(frozen=True)
class NodeMapConfig:
    """Classification rules and pod filter used to build a NodeMap"""
    spot_rule: LabelRule = LabelRule.parse(DEFAULT_SPOT_NODE_LABEL)
    on_demand_rule: LabelRule = LabelRule.parse(DEFAULT_ON_DEMAND_NODE_LABEL)
    priority_threshold: int = DEFAULT_PRIORITY_THRESHOLD  # Lowest pod priority counted on spot nodes
    workers: int = 1  # Parallel per-node builds

    def classify(self, node) -> NodeClass:
        return classify(node, self.spot_rule, self.on_demand_rule)


def node_name(node) -> str:
    return node.metadata.name


def pod_key(pod) -> str:
    return f"{pod.metadata.namespace}/{pod.metadata.name}"


def pod_priority(pod) -> int:
    """Scheduling priority of a pod; unset means the default priority 0"""
    priority = pod.spec.priority if pod.spec else None
    return priority if priority is not None else 0


def sort_pods_by_cpu(pods: Iterable) -> List:
    """Pods ordered by CPU request, biggest first"""
    return sorted(pods, key=pod_cpu_requests, reverse=True)


@dataclass
class NodeInfo:
    """
    A node, the pods counted against it and its CPU accounting.

    ``pods`` is ordered by CPU request (biggest first) when built by
    NodeInfoBuilder. ``add_pod`` appends without re-sorting; call
    ``sort_pods`` to restore the order.
    """
    node: Any
    pods: List = field(default_factory=list)
    requested_cpu: int = 0  # millicores
    free_cpu: int = 0  # millicores, negative when overcommitted

    @classmethod
    def from_pods(cls, node, pods: List) -> "NodeInfo":
        info = cls(node=node, pods=list(pods))
        info._recalculate()
        return info

    @property
    def name(self) -> str:
        return node_name(self.node)

    @property
    def allocatable_cpu(self) -> int:
        return allocatable_cpu(self.node)

    def add_pod(self, pod):
        """Add a pod to the node and update the CPU accounting"""
        # Rebinding instead of appending keeps lists shared with copies intact
        self.pods = self.pods + [pod]
        self._recalculate()

    def sort_pods(self):
        """Restore biggest-CPU-request-first ordering after add_pod"""
        self.pods = sort_pods_by_cpu(self.pods)

    def copy(self) -> "NodeInfo":
        """Shallow copy sharing the node, pod list and totals"""
        return NodeInfo(
            node=self.node,
            pods=self.pods,
            requested_cpu=self.requested_cpu,
            free_cpu=self.free_cpu
        )

    def _recalculate(self):
        requested = calculate_requested_cpu(self.pods)
        free = allocatable_cpu(self.node) - requested
        self.requested_cpu, self.free_cpu = requested, free

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'allocatable_cpu': self.allocatable_cpu,
            'requested_cpu': self.requested_cpu,
            'free_cpu': self.free_cpu,
            'pods': [
                {'pod': pod_key(pod), 'cpu': pod_cpu_requests(pod), 'priority': pod_priority(pod)}
                for pod in self.pods
            ],
        }


class NodeInfoList(list):
    """Ordered list of NodeInfo"""

    def copy_all(self) -> "NodeInfoList":
        """Copies of every NodeInfo, safe to mutate with add_pod"""
        return NodeInfoList(info.copy() for info in self)

    def total_requested_cpu(self) -> int:
        return sum(info.requested_cpu for info in self)

    def total_free_cpu(self) -> int:
        return sum(info.free_cpu for info in self)


class NodeMap(dict):
    """NodeInfoList per NodeClass; SPOT and ON_DEMAND are always present"""

    def __init__(self):
        super().__init__({
            NodeClass.SPOT: NodeInfoList(),
            NodeClass.ON_DEMAND: NodeInfoList(),
        })

    @property
    def spot(self) -> NodeInfoList:
        return self[NodeClass.SPOT]

    @property
    def on_demand(self) -> NodeInfoList:
        return self[NodeClass.ON_DEMAND]

    def summary(self) -> str:
        return (
            f"{len(self.spot)} spot nodes ({self.spot.total_requested_cpu()}m requested), "
            f"{len(self.on_demand)} on-demand nodes ({self.on_demand.total_requested_cpu()}m requested, "
            f"{self.on_demand.total_free_cpu()}m free)"
        )

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            node_class.value: [info.to_dict() for info in infos]
            for node_class, infos in self.items()
        }


class NodeInfoBuilder:
    """Build NodeInfo records from the pods the cluster reports on a node"""

    def __init__(self, pod_lister: PodLister, config: NodeMapConfig):
        self.pod_lister = pod_lister
        self.config = config

    def build(self, node, node_class: Optional[NodeClass] = None) -> NodeInfo:
        """
        Build the NodeInfo for a node.

        Args:
            node: V1Node to account
            node_class: Class of the node (classified from labels when omitted)

        Returns:
            NodeInfo with pods ordered biggest CPU request first

        Raises:
            LoadError: the pods on the node could not be listed
        """
        if node_class is None:
            node_class = self.config.classify(node)

        pods = self.pod_lister.list_pods_on_node(node)

        if node_class == NodeClass.SPOT:
            pods = self._filter_low_priority(node, pods)

        return NodeInfo.from_pods(node, sort_pods_by_cpu(pods))

    def _filter_low_priority(self, node, pods: List) -> List:
        """Drop pods below the priority threshold"""
        kept = []
        for pod in pods:
            if pod_priority(pod) < self.config.priority_threshold:
                logger.debug(
                    f"{node_name(node)} - Ignoring {pod_key(pod)} "
                    f"(priority {pod_priority(pod)} < {self.config.priority_threshold})"
                )
                continue
            kept.append(pod)
        return kept


def new_node_map(nodes: Iterable, pod_lister: PodLister,
                 config: Optional[NodeMapConfig] = None) -> NodeMap:
    """
    Build a NodeMap from a list of nodes.

    Spot nodes are ordered by most requested CPU first (drain sources),
    on-demand nodes by least requested CPU first (migration targets).
    Ties keep the input order.

    Raises:
        LoadError: pods could not be listed for one of the nodes. No partial
            map is returned.
    """
    config = config or NodeMapConfig()
    builder = NodeInfoBuilder(pod_lister, config)

    classified = []
    for node in nodes:
        node_class = config.classify(node)
        if node_class == NodeClass.NONE:
            logger.debug(f"{node_name(node)} - Matches neither spot nor on-demand label, skipping")
            continue
        classified.append((node, node_class))

    if config.workers > 1 and len(classified) > 1:
        infos = _build_parallel(builder, classified, config.workers)
    else:
        infos = [_build_one(builder, node, node_class) for node, node_class in classified]

    node_map = NodeMap()
    for (_, node_class), info in zip(classified, infos):
        node_map[node_class].append(info)

    node_map[NodeClass.SPOT].sort(key=lambda info: info.requested_cpu, reverse=True)
    node_map[NodeClass.ON_DEMAND].sort(key=lambda info: info.requested_cpu)

    logger.info(f"Node map built: {node_map.summary()}")
    return node_map


def _build_one(builder: NodeInfoBuilder, node, node_class: NodeClass) -> NodeInfo:
    try:
        return builder.build(node, node_class)
    except LoadError as e:
        logger.error(f"{node_name(node)} - Failed to load pods: {e}")
        raise


def _build_parallel(builder: NodeInfoBuilder, classified: List, workers: int) -> List[NodeInfo]:
    """Build NodeInfos concurrently, results in input order"""
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="node-info") as executor:
        futures = [
            executor.submit(_build_one, builder, node, node_class)
            for node, node_class in classified
        ]
        try:
            return [future.result() for future in futures]
        except LoadError:
            for future in futures:
                future.cancel()
            raise
