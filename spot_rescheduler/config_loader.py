"""
Configuration Loader
Reads settings from the environment, overridden by an optional ConfigMap
"""

import os
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Mapping, Optional

from kubernetes import client

from spot_rescheduler.config_validator import ConfigValidator
from spot_rescheduler.labels import LabelRule
from spot_rescheduler.nodes import (
    DEFAULT_ON_DEMAND_NODE_LABEL,
    DEFAULT_PRIORITY_THRESHOLD,
    DEFAULT_SPOT_NODE_LABEL,
    NodeMapConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "kube-system"
DEFAULT_CONFIGMAP_NAME = "spot-rescheduler-config"

# Setting name -> default, as raw strings
DEFAULTS: Dict[str, str] = {
    "SPOT_NODE_LABEL": DEFAULT_SPOT_NODE_LABEL,
    "ON_DEMAND_NODE_LABEL": DEFAULT_ON_DEMAND_NODE_LABEL,
    "PRIORITY_THRESHOLD": str(DEFAULT_PRIORITY_THRESHOLD),
    "HOUSEKEEPING_INTERVAL": "10",
    "BUILD_WORKERS": "1",
    "K8S_API_RATE_LIMIT": "20",
    "METRICS_PORT": "9235",
    "RUN_ONCE": "false",
    "LOG_LEVEL": "INFO",
    "LOG_FORMAT": "json",
}


@dataclass(frozen=True)
class OperatorConfig:
    """Operator configuration"""
    spot_node_label: LabelRule
    on_demand_node_label: LabelRule
    priority_threshold: int
    housekeeping_interval: int
    build_workers: int
    k8s_api_rate_limit: int
    metrics_port: int
    run_once: bool
    log_level: str
    log_format: str

    def node_map_config(self) -> NodeMapConfig:
        return NodeMapConfig(
            spot_rule=self.spot_node_label,
            on_demand_rule=self.on_demand_node_label,
            priority_threshold=self.priority_threshold,
            workers=self.build_workers
        )


class ConfigLoader:
    """Load configuration from environment variables and ConfigMap"""

    def __init__(self, namespace: str = DEFAULT_NAMESPACE,
                 configmap_name: str = DEFAULT_CONFIGMAP_NAME,
                 core_v1: Optional[client.CoreV1Api] = None,
                 environ: Optional[Mapping[str, str]] = None):
        self.namespace = namespace
        self.configmap_name = configmap_name
        self.core_v1 = core_v1
        self.environ = environ if environ is not None else os.environ
        self.config: Optional[OperatorConfig] = None
        self.config_version: int = 0
        self.last_reload: Optional[datetime] = None

    def load_config(self) -> OperatorConfig:
        """Load configuration from environment variables and ConfigMap"""
        logger.info("Loading configuration...")

        settings = self._load_from_env()

        overrides = self._load_from_configmap()
        if overrides:
            settings.update(overrides)
            logger.info(f"Configuration loaded from ConfigMap {self.namespace}/{self.configmap_name}")

        self.config = self._build_config(settings)
        self.config_version += 1
        self.last_reload = datetime.now()

        logger.info(
            f"Configuration loaded (version {self.config_version}): "
            f"spot_label={self.config.spot_node_label}, "
            f"on_demand_label={self.config.on_demand_node_label}, "
            f"priority_threshold={self.config.priority_threshold}, "
            f"housekeeping_interval={self.config.housekeeping_interval}s"
        )
        return self.config

    def get_config(self) -> OperatorConfig:
        """Get current configuration"""
        if not self.config:
            return self.load_config()
        return self.config

    def _load_from_env(self) -> Dict[str, str]:
        return {name: self.environ.get(name, default) for name, default in DEFAULTS.items()}

    def _load_from_configmap(self) -> Optional[Dict[str, str]]:
        """ConfigMap values keyed by setting name; keys are lower-case setting names"""
        if self.core_v1 is None:
            return None

        try:
            configmap = self.core_v1.read_namespaced_config_map(
                name=self.configmap_name,
                namespace=self.namespace
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                logger.debug(f"ConfigMap {self.configmap_name} not found")
            else:
                logger.error(f"Error reading ConfigMap, using environment only: {e}")
            return None

        if not configmap.data:
            return None

        overrides = {}
        for key, value in configmap.data.items():
            name = key.upper()
            if name in DEFAULTS:
                overrides[name] = value
            else:
                logger.warning(f"Ignoring unknown ConfigMap key '{key}'")
        return overrides

    @staticmethod
    def _build_config(settings: Dict[str, str]) -> OperatorConfig:
        return OperatorConfig(
            spot_node_label=ConfigValidator.validate_label_rule(
                settings["SPOT_NODE_LABEL"], "SPOT_NODE_LABEL"
            ),
            on_demand_node_label=ConfigValidator.validate_label_rule(
                settings["ON_DEMAND_NODE_LABEL"], "ON_DEMAND_NODE_LABEL"
            ),
            priority_threshold=ConfigValidator.validate_priority_threshold(settings["PRIORITY_THRESHOLD"]),
            housekeeping_interval=ConfigValidator.validate_housekeeping_interval(
                settings["HOUSEKEEPING_INTERVAL"]
            ),
            build_workers=ConfigValidator.validate_build_workers(settings["BUILD_WORKERS"]),
            k8s_api_rate_limit=ConfigValidator.validate_rate_limit(settings["K8S_API_RATE_LIMIT"]),
            metrics_port=ConfigValidator.validate_port(settings["METRICS_PORT"], "METRICS_PORT"),
            run_once=settings["RUN_ONCE"].strip().lower() == "true",
            log_level=settings["LOG_LEVEL"].strip().upper(),
            log_format=ConfigValidator.validate_log_format(settings["LOG_FORMAT"])
        )
