"""
Prometheus Metrics Exporter
Exposes node map state for monitoring and alerting
"""

import logging
from typing import Optional, Set, Tuple

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram, Info, start_http_server

from spot_rescheduler import __version__
from spot_rescheduler.nodes import NodeMap

logger = logging.getLogger(__name__)


class PrometheusExporter:
    """Export node map metrics to Prometheus"""

    def __init__(self, port: int = 9235, registry: Optional[CollectorRegistry] = None):
        self.port = port
        self.registry = registry or REGISTRY

        self.operator_info = Info(
            'spot_rescheduler',
            'Spot rescheduler information',
            registry=self.registry
        )

        self.nodes = Gauge(
            'spot_rescheduler_nodes',
            'Number of nodes per class',
            ['node_class'],
            registry=self.registry
        )

        self.node_requested_cpu = Gauge(
            'spot_rescheduler_node_requested_cpu_millicores',
            'CPU requested by pods counted on the node',
            ['node', 'node_class'],
            registry=self.registry
        )

        self.node_free_cpu = Gauge(
            'spot_rescheduler_node_free_cpu_millicores',
            'Allocatable CPU minus requested CPU (negative when overcommitted)',
            ['node', 'node_class'],
            registry=self.registry
        )

        self.node_pods = Gauge(
            'spot_rescheduler_node_pods',
            'Pods counted on the node',
            ['node', 'node_class'],
            registry=self.registry
        )

        self.builds_total = Counter(
            'spot_rescheduler_node_map_builds_total',
            'Node map builds by result',
            ['result'],
            registry=self.registry
        )

        self.build_duration = Histogram(
            'spot_rescheduler_node_map_build_duration_seconds',
            'Time to build the node map',
            registry=self.registry
        )

        self.rate_limit_delays = Counter(
            'spot_rescheduler_rate_limit_delays_total',
            'Kubernetes API calls delayed by the client-side rate limiter',
            registry=self.registry
        )

        # (node, node_class) label sets currently exported
        self._published: Set[Tuple[str, str]] = set()

    def start(self):
        """Start Prometheus metrics server"""
        start_http_server(self.port, registry=self.registry)
        logger.info(f"Prometheus metrics server started on port {self.port}")
        self.operator_info.info({'version': __version__})

    def update_node_map(self, node_map: NodeMap):
        """Publish per-class and per-node metrics for a freshly built map"""
        published = set()
        for node_class, infos in node_map.items():
            self.nodes.labels(node_class=node_class.value).set(len(infos))
            for info in infos:
                key = (info.name, node_class.value)
                self.node_requested_cpu.labels(*key).set(info.requested_cpu)
                self.node_free_cpu.labels(*key).set(info.free_cpu)
                self.node_pods.labels(*key).set(len(info.pods))
                published.add(key)

        # Only series of nodes that left the map are removed, the rest stay scrapeable
        for key in self._published - published:
            self._remove_node_series(key)
        self._published = published

    def clear_node_map(self):
        """Withdraw all node map series after a failed build"""
        for key in self._published:
            self._remove_node_series(key)
        self._published = set()
        self.nodes.clear()

    def _remove_node_series(self, key: Tuple[str, str]):
        for gauge in (self.node_requested_cpu, self.node_free_cpu, self.node_pods):
            gauge.remove(*key)

    def record_build(self, success: bool, duration: float):
        """Record a node map build attempt"""
        self.builds_total.labels(result='success' if success else 'failure').inc()
        self.build_duration.observe(duration)

    def record_rate_limit_delay(self, delay: float):
        """Record a rate limit delay event"""
        self.rate_limit_delays.inc()
