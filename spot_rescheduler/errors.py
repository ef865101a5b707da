"""
Error Types
Failures raised while loading configuration or building the node map
"""


class LoadError(Exception):
    """The node map could not be built"""


class QueryError(LoadError):
    """The cluster API failed to list nodes or pods"""


class ConfigError(ValueError):
    """A configuration value is invalid"""
