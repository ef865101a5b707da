"""
Spot Rescheduler - Main Entry Point
Rebuilds the node map on every housekeeping cycle and publishes it
"""

import json
import logging
import os
import signal
import sys
import threading
import time
from typing import Optional

from spot_rescheduler import __version__
from spot_rescheduler.cluster import KubeClusterClient
from spot_rescheduler.config_loader import DEFAULT_CONFIGMAP_NAME, DEFAULT_NAMESPACE, ConfigLoader
from spot_rescheduler.errors import ConfigError, LoadError
from spot_rescheduler.logging_config import setup_structured_logging
from spot_rescheduler.nodes import NodeMap, NodeMapConfig, new_node_map
from spot_rescheduler.prometheus_exporter import PrometheusExporter
from spot_rescheduler.resilience import RateLimiter

logger = logging.getLogger(__name__)


class NodeMapMonitor:
    """Periodically rebuild the node map from a live cluster snapshot"""

    def __init__(self, cluster: KubeClusterClient, config: NodeMapConfig,
                 interval: int = 10, exporter: Optional[PrometheusExporter] = None):
        self.cluster = cluster
        self.config = config
        self.interval = interval
        self.exporter = exporter
        self.shutdown_event = threading.Event()
        self._latest: Optional[NodeMap] = None

    def build(self) -> NodeMap:
        """Build a node map from the current cluster state"""
        nodes = self.cluster.list_nodes()
        return new_node_map(nodes, self.cluster, self.config)

    def run_cycle(self) -> Optional[NodeMap]:
        """One housekeeping cycle; returns None when the map could not be built"""
        start = time.monotonic()
        try:
            node_map = self.build()
        except LoadError as e:
            logger.error(f"Failed to build node map: {e}")
            self._discard(time.monotonic() - start)
            return None
        except Exception as e:
            logger.error(f"Unexpected error building node map: {e}", exc_info=True)
            self._discard(time.monotonic() - start)
            return None

        self._latest = node_map
        if self.exporter:
            self.exporter.record_build(True, time.monotonic() - start)
            self.exporter.update_node_map(node_map)
        return node_map

    def _discard(self, duration: float):
        """Drop the previous map so nothing acts on a stale view of the cluster"""
        self._latest = None
        if self.exporter:
            self.exporter.record_build(False, duration)
            self.exporter.clear_node_map()

    def latest(self) -> Optional[NodeMap]:
        """Last successfully built map, None if the last cycle failed"""
        return self._latest

    def run(self):
        """Run housekeeping cycles until shutdown"""
        logger.info(f"Starting housekeeping loop (interval {self.interval}s)")
        while not self.shutdown_event.is_set():
            self.run_cycle()
            if self.shutdown_event.wait(timeout=self.interval):
                break
        logger.info("Housekeeping loop stopped")

    def stop(self, *_):
        logger.info("Shutdown requested")
        self.shutdown_event.set()


def main():
    """Main entry point"""
    setup_structured_logging(
        log_level=os.getenv('LOG_LEVEL', 'INFO'),
        json_format=os.getenv('LOG_FORMAT', 'json').lower() == 'json',
        extra_fields={'component': 'spot-rescheduler', 'version': __version__}
    )

    cluster = KubeClusterClient.from_environment()

    config_loader = ConfigLoader(
        namespace=os.getenv('OPERATOR_NAMESPACE', DEFAULT_NAMESPACE),
        configmap_name=os.getenv('CONFIGMAP_NAME', DEFAULT_CONFIGMAP_NAME),
        core_v1=cluster.core_v1
    )
    try:
        config = config_loader.load_config()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    # ConfigMap may override the log settings taken from the environment
    setup_structured_logging(
        log_level=config.log_level,
        json_format=config.log_format == 'json',
        extra_fields={'component': 'spot-rescheduler', 'version': __version__}
    )

    if config.run_once:
        cluster.rate_limiter = RateLimiter(max_calls=config.k8s_api_rate_limit)
        monitor = NodeMapMonitor(cluster, config.node_map_config())
        try:
            node_map = monitor.build()
        except LoadError as e:
            logger.error(f"Failed to build node map: {e}")
            sys.exit(1)
        print(json.dumps(node_map.to_dict(), indent=2))
        return

    exporter = PrometheusExporter(port=config.metrics_port)
    cluster.rate_limiter = RateLimiter(
        max_calls=config.k8s_api_rate_limit,
        on_delay=exporter.record_rate_limit_delay
    )
    monitor = NodeMapMonitor(
        cluster,
        config.node_map_config(),
        interval=config.housekeeping_interval,
        exporter=exporter
    )

    signal.signal(signal.SIGTERM, monitor.stop)
    signal.signal(signal.SIGINT, monitor.stop)

    exporter.start()
    monitor.run()


if __name__ == "__main__":
    main()
