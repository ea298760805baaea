"""
This module contains the IsolationTreeNode and IsolationTree classes that
implement the isolation tree over a single scalar dimension using random
split thresholds.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import matplotlib.pyplot as plt
import numpy as np
import numpy.typing as npt


def average_path_length(n: int) -> float:
    """
    Expected path length of an unsuccessful search in a random binary tree
    built over n items, c(n) = 2 * H(n - 1) - 2 * (n - 1) / n.
    Args:
        n: Number of items.
    Returns:
        c(n), 0.0 for n <= 1.
    """
    if n <= 1:
        return 0.0
    harmonic_number = float(np.sum(1.0 / np.arange(1, n, dtype=np.float64)))
    return 2.0 * harmonic_number - 2.0 * (n - 1) / n


def max_tree_height(subsample_size: int) -> int:
    """Height limit for trees grown on at most subsample_size samples."""
    return int(np.ceil(np.log2(subsample_size)))


def _draw_split(low: float, high: float, rng: np.random.Generator) -> float:
    """Uniform draw from the closed range [low, high]."""
    # A constant subset gives split == low == high, so everything lands right.
    if low == high:
        return float(low)
    return float(min(rng.uniform(low, np.nextafter(high, np.inf)), high))


class IsolationTreeNode:
    """
    Node in an Isolation Tree.
    Internal nodes hold a split threshold and exactly two children, leaves hold neither.
    Attributes:
        height: Depth of the node in the tree (root is 0).
        size: Number of samples that reached this node while the tree was grown.
        split_value: Threshold value for the split (None for leaf nodes).
        left: Child receiving values strictly below split_value.
        right: Child receiving values greater than or equal to split_value.
    """
    def __init__(self, height: int, size: int) -> None:
        self.height = height
        self.size = size

        self.split_value: float | None = None
        self.left: IsolationTreeNode | None = None
        self.right: IsolationTreeNode | None = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def partition_space(
        self,
        values: npt.NDArray[np.floating[Any]],
        max_height: int,
        rng: np.random.Generator,
    ) -> None:
        """
        Recursively partition the value axis using random splits.
        Args:
            values: Samples that reached this node, shape (n_samples,).
            max_height: Height at which nodes become leaves.
            rng: Random source for the split thresholds.
        """
        if self.height >= max_height or values.shape[0] <= 1:
            return

        self.split_value = _draw_split(values.min(), values.max(), rng)

        values_lower = values[values < self.split_value]
        values_upper = values[values >= self.split_value]

        self.left = IsolationTreeNode(self.height + 1, values_lower.shape[0])
        self.right = IsolationTreeNode(self.height + 1, values_upper.shape[0])

        self.left.partition_space(values_lower, max_height, rng)
        self.right.partition_space(values_upper, max_height, rng)

    def path_length(self, value: float, accumulated_depth: float = 0.0) -> float:
        """
        Number of edges from this node to the leaf isolating value, plus
        c(leaf.size) for the part of the tree that was never expanded.
        """
        if self.left is None or self.right is None:
            return accumulated_depth + average_path_length(self.size)

        if self.split_value is None:
            return accumulated_depth

        if value < self.split_value:
            return self.left.path_length(value, accumulated_depth + 1.0)
        return self.right.path_length(value, accumulated_depth + 1.0)

    def path_lengths_batch(
        self, values: npt.NDArray[np.floating[Any]],
    ) -> npt.NDArray[np.floating[Any]]:
        """
        Args:
            values: Query values of shape (n_samples,).
        Returns:
            Path lengths for each value of shape (n_samples,).
        """
        n_samples = values.shape[0]

        if self.left is None or self.right is None:
            return np.full(n_samples, average_path_length(self.size), dtype=np.float64)

        path_lengths = np.zeros(n_samples, dtype=np.float64)
        if self.split_value is None:
            return path_lengths

        mask_lower = values < self.split_value

        if np.any(mask_lower):
            path_lengths[mask_lower] = 1 + self.left.path_lengths_batch(values[mask_lower])

        if np.any(~mask_lower):
            path_lengths[~mask_lower] = 1 + self.right.path_lengths_batch(values[~mask_lower])

        return path_lengths

    def iter_nodes(self) -> Iterator[IsolationTreeNode]:
        """Yield this node and all its descendants, depth first."""
        yield self
        for child in (self.left, self.right):
            if child is not None:
                yield from child.iter_nodes()

    def plot_partition_space_1D(self, top: float) -> None:
        """
        Plots a vertical line for each split, shorter the deeper the split sits.
        """
        if self.split_value is None:
            return

        plt.plot([self.split_value, self.split_value], [0.0, top / (self.height + 1)], c="gray")

        for child in (self.left, self.right):
            if child is not None:
                child.plot_partition_space_1D(top)


def build_tree(
    values: npt.ArrayLike,
    height: int = 0,
    *,
    max_height: int,
    rng: np.random.Generator,
) -> IsolationTreeNode:
    """
    Grow an isolation tree over values starting at the given height.
    Args:
        values: Samples to partition.
        height: Height of the returned node.
        max_height: Height at which nodes become leaves.
        rng: Random source for the split thresholds.
    Returns:
        The root node of the grown (sub)tree.
    """
    values_arr = np.asarray(values, dtype=np.float64).reshape(-1)
    node = IsolationTreeNode(height=height, size=values_arr.shape[0])
    node.partition_space(values_arr, max_height, rng)
    return node


class IsolationTree:
    """
    Single Isolation Tree grown on a random subsample of the history.
    Attributes:
        max_height: Height limit derived from the subsample cap.
        root: Root node of the tree.
        training_values: Subsample the tree was grown on.
    """

    def __init__(self, max_height: int) -> None:
        self.max_height = max_height
        self.root: IsolationTreeNode | None = None
        self.training_values: npt.NDArray[np.floating[Any]] | None = None

    def fit(
        self,
        values: npt.NDArray[np.floating[Any]],
        subsample_size: int,
        rng: np.random.Generator,
    ) -> IsolationTree:
        """
        Shuffles values, keeps the first subsample_size of them and grows the tree on that prefix.
        Args:
            values: Historical samples of shape (n_samples,).
            subsample_size: Cap on the number of samples used for this tree.
            rng: Random source for the shuffle and the split thresholds.
        """
        self.training_values = rng.permutation(values)[:subsample_size]
        self.root = build_tree(self.training_values, 0, max_height=self.max_height, rng=rng)
        return self

    def path_length(self, value: float) -> float:
        assert self.root is not None

        return self.root.path_length(value)

    def path_lengths(self, values: npt.NDArray[np.floating[Any]]) -> npt.NDArray[np.floating[Any]]:
        """
        Args:
            values: Query values of shape (n_samples,).
        Returns:
            Path lengths for each value of shape (n_samples,).
        """
        assert self.root is not None

        return self.root.path_lengths_batch(values)

    def plot_partition_space_1D(self, show: bool = True) -> None:
        """
        Visualize the partition of the value axis created by this tree.
        """
        assert self.root is not None
        assert self.training_values is not None

        plt.title("Space Partition Isolation Tree")
        plt.xlabel("Heart rate (BPM)")
        plt.yticks([])

        plt.scatter(
            self.training_values,
            np.zeros(self.training_values.shape[0]),
            c="lightgray",
            s=5,
        )
        self.root.plot_partition_space_1D(top=1.0)

        if show:
            plt.show()
