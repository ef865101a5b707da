"""
Node Classifier
Label rules deciding whether a node is spot, on-demand or neither
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from spot_rescheduler.errors import ConfigError


class NodeClass(Enum):
    """Node capacity classes"""
    SPOT = "spot"
    ON_DEMAND = "on-demand"
    NONE = "none"  # Matches neither rule, never stored in a NodeMap


@dataclass(frozen=True)
class LabelRule:
    """
    Label match rule for one node class.

    Two label schemas are supported:
    - key only (``node-role.kubernetes.io/spot-worker``): the key must be present
    - key/value (``kubernetes.io/role=spot-worker``): the key must carry that value
    """
    key: str
    value: Optional[str] = None

    @classmethod
    def parse(cls, rule: str) -> "LabelRule":
        """Parse a ``key`` or ``key=value`` rule string"""
        if rule is None:
            raise ConfigError("Label rule is required")

        rule = rule.strip()
        if rule.count("=") > 1:
            raise ConfigError(
                f"Invalid label rule '{rule}': expected 'key' or 'key=value', "
                f"found {rule.count('=')} '=' separators"
            )

        key, sep, value = rule.partition("=")
        key = key.strip()
        if not key:
            raise ConfigError(f"Invalid label rule '{rule}': label key is empty")

        if not sep:
            return cls(key=key)
        return cls(key=key, value=value.strip())

    @property
    def key_only(self) -> bool:
        return self.value is None

    def matches(self, labels: Optional[Dict[str, str]]) -> bool:
        """Check whether a label set satisfies this rule"""
        if not labels or self.key not in labels:
            return False
        if self.key_only:
            return True
        return labels[self.key] == self.value

    def __str__(self) -> str:
        if self.key_only:
            return self.key
        return f"{self.key}={self.value}"


def node_labels(node) -> Dict[str, str]:
    """Labels of a V1Node, empty when the node has none"""
    metadata = getattr(node, "metadata", None)
    if metadata is None:
        return {}
    return metadata.labels or {}


def classify(node, spot_rule: LabelRule, on_demand_rule: LabelRule) -> NodeClass:
    """
    Classify a node by its labels.

    The spot rule is evaluated first, so a node matching both rules is SPOT.
    """
    labels = node_labels(node)

    if spot_rule.matches(labels):
        return NodeClass.SPOT
    if on_demand_rule.matches(labels):
        return NodeClass.ON_DEMAND
    return NodeClass.NONE
