"""Isolation Forest implementation for scalar anomaly scoring.

This package provides the Isolation Forest algorithm using random
partitioning of a single value axis.
"""

from .forest import DEFAULT_THRESHOLD, AnomalyVerdict, Forest, IsolationForest
from .tree import IsolationTree, IsolationTreeNode, average_path_length, build_tree, max_tree_height

__all__ = [
    "AnomalyVerdict",
    "DEFAULT_THRESHOLD",
    "Forest",
    "IsolationForest",
    "IsolationTree",
    "IsolationTreeNode",
    "average_path_length",
    "build_tree",
    "max_tree_height",
]
