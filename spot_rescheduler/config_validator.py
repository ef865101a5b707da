"""
Configuration Validator
Validates environment variables and ConfigMap values
"""

import logging

from spot_rescheduler.errors import ConfigError
from spot_rescheduler.labels import LabelRule

logger = logging.getLogger(__name__)


class ConfigValidator:
    """Validate configuration values"""

    @staticmethod
    def validate_label_rule(rule: str, name: str = "NODE_LABEL") -> LabelRule:
        """Validate a 'key' or 'key=value' node label rule"""
        try:
            return LabelRule.parse(rule)
        except ConfigError as e:
            raise ConfigError(f"Invalid {name}: {e}") from e

    @staticmethod
    def validate_priority_threshold(value: str) -> int:
        """Validate pod priority threshold"""
        try:
            val = int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid PRIORITY_THRESHOLD: {value}. Must be an integer") from e
        # Pod priorities are 32-bit signed integers
        if val < -2147483648 or val > 2147483647:
            raise ConfigError(f"PRIORITY_THRESHOLD out of range: {val}")
        return val

    @staticmethod
    def validate_housekeeping_interval(interval: str) -> int:
        """Validate housekeeping interval"""
        try:
            value = int(interval)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid HOUSEKEEPING_INTERVAL: {interval}. Must be an integer") from e
        if value < 1:
            raise ConfigError(f"HOUSEKEEPING_INTERVAL must be at least 1 second, got {value}")
        if value > 3600:
            raise ConfigError(f"HOUSEKEEPING_INTERVAL must be at most 3600 seconds (1 hour), got {value}")
        return value

    @staticmethod
    def validate_build_workers(workers: str) -> int:
        """Validate number of parallel node builds"""
        try:
            value = int(workers)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid BUILD_WORKERS: {workers}. Must be an integer") from e
        if value < 1 or value > 64:
            raise ConfigError(f"BUILD_WORKERS must be between 1 and 64, got {value}")
        return value

    @staticmethod
    def validate_rate_limit(limit: str) -> int:
        """Validate API calls per second"""
        try:
            value = int(limit)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid K8S_API_RATE_LIMIT: {limit}. Must be an integer") from e
        if value < 1:
            raise ConfigError(f"K8S_API_RATE_LIMIT must be at least 1, got {value}")
        return value

    @staticmethod
    def validate_port(port: str, name: str = "PORT") -> int:
        """Validate port number"""
        try:
            val = int(port)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid {name}: {port}. Must be an integer") from e
        if val < 1 or val > 65535:
            raise ConfigError(f"{name} must be between 1 and 65535, got {val}")
        return val

    @staticmethod
    def validate_log_format(value: str) -> str:
        """Validate log format"""
        fmt = (value or "").strip().lower()
        if fmt not in ("json", "text"):
            raise ConfigError(f"Invalid LOG_FORMAT: {value}. Must be 'json' or 'text'")
        return fmt
