"""
Structured Logging Configuration
JSON logging for log aggregation
"""

import logging
import sys
from typing import Optional

from pythonjsonlogger.json import JsonFormatter


class _StaticFieldsFilter(logging.Filter):
    """Attach fixed fields (component, version) to every record"""

    def __init__(self, fields: dict):
        super().__init__()
        self.fields = fields

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.fields.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def setup_structured_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    extra_fields: Optional[dict] = None
) -> logging.Logger:
    """
    Setup structured logging

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON format, plain text otherwise
        extra_fields: Additional fields to include in all log entries

    Returns:
        Configured root logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if json_format:
        format_string = '%(asctime)s %(levelname)s %(name)s %(message)s'
        if extra_fields:
            for key in extra_fields.keys():
                format_string += f' %({key})s'
        formatter = JsonFormatter(
            format_string,
            rename_fields={'asctime': 'timestamp', 'levelname': 'level'}
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    handler.setFormatter(formatter)

    if extra_fields:
        handler.addFilter(_StaticFieldsFilter(extra_fields))

    root_logger.addHandler(handler)
    return root_logger
