"""
Tests for the isolation tree in `pulse_iforest/isolation/tree.py`.

Covers:
- c(n) normalisation constant and height limit
- Structural invariants of grown trees
- Degenerate inputs (empty, single value, constant values)
- Path length walk, leaf correction and the vectorised variant
"""

from __future__ import annotations

import matplotlib.pyplot as plt
import numpy as np
import pytest

from pulse_iforest.isolation import (
    IsolationTree,
    IsolationTreeNode,
    average_path_length,
    build_tree,
    max_tree_height,
)


def test_average_path_length_small_sizes() -> None:
    assert average_path_length(0) == 0.0
    assert average_path_length(1) == 0.0
    assert average_path_length(2) == pytest.approx(1.0)
    assert average_path_length(3) == pytest.approx(2.0 * 1.5 - 4.0 / 3.0)


def test_average_path_length_is_non_negative_and_increasing() -> None:
    values = [average_path_length(n) for n in range(0, 600)]
    assert all(v >= 0.0 for v in values)
    assert all(b > a for a, b in zip(values[1:], values[2:]))
    assert average_path_length(256) == pytest.approx(10.2487, abs=1e-3)


@pytest.mark.parametrize(("size", "height"), [(2, 1), (3, 2), (100, 7), (256, 8), (257, 9)])
def test_max_tree_height(size: int, height: int) -> None:
    assert max_tree_height(size) == height


def test_grown_tree_structural_invariants(rng: np.random.Generator) -> None:
    values = rng.normal(loc=70.0, scale=5.0, size=256)
    root = build_tree(values, max_height=8, rng=rng)

    assert root.height == 0
    assert root.size == 256
    for node in root.iter_nodes():
        if node.is_leaf:
            assert node.height <= 8
            assert node.split_value is None
        else:
            assert node.left is not None and node.right is not None
            assert node.split_value is not None
            assert node.size == node.left.size + node.right.size
            assert node.left.height == node.right.height == node.height + 1


def test_seeded_build_is_reproducible() -> None:
    values = np.linspace(50.0, 120.0, 64)

    first = build_tree(values, max_height=6, rng=np.random.default_rng(7))
    second = build_tree(values, max_height=6, rng=np.random.default_rng(7))

    first_splits = [node.split_value for node in first.iter_nodes()]
    second_splits = [node.split_value for node in second.iter_nodes()]
    assert first_splits == second_splits


def test_empty_and_single_value_give_a_leaf(rng: np.random.Generator) -> None:
    empty = build_tree([], max_height=8, rng=rng)
    single = build_tree([65.0], max_height=8, rng=rng)

    assert empty.is_leaf and empty.size == 0
    assert single.is_leaf and single.size == 1


def test_constant_values_split_everything_right(rng: np.random.Generator) -> None:
    root = build_tree([70.0] * 5, max_height=3, rng=rng)

    assert root.split_value == 70.0
    assert root.left is not None and root.left.is_leaf and root.left.size == 0
    assert root.right is not None and root.right.size == 5

    deepest = max(
        (node for node in root.iter_nodes() if node.size), key=lambda node: node.height
    )
    assert deepest.height == 3
    assert deepest.size == 5


def test_splits_stay_within_the_node_range(rng: np.random.Generator) -> None:
    values = rng.uniform(40.0, 180.0, size=128)
    root = build_tree(values, max_height=7, rng=rng)

    assert root.split_value is not None
    assert values.min() <= root.split_value <= values.max()


def _hand_built_tree() -> IsolationTreeNode:
    root = IsolationTreeNode(height=0, size=3)
    root.split_value = 5.0
    root.left = IsolationTreeNode(height=1, size=1)
    root.right = IsolationTreeNode(height=1, size=2)
    return root


def test_path_length_adds_leaf_correction() -> None:
    root = _hand_built_tree()

    assert root.path_length(1.0) == pytest.approx(1.0)
    # Values equal to the split go right.
    assert root.path_length(5.0) == pytest.approx(1.0 + average_path_length(2))
    assert root.path_length(9.0, accumulated_depth=2.0) == pytest.approx(4.0)


def test_path_length_of_a_bare_leaf() -> None:
    leaf = IsolationTreeNode(height=0, size=5)
    assert leaf.path_length(70.0) == pytest.approx(average_path_length(5))


def test_path_length_without_split_value_returns_depth_unadjusted() -> None:
    root = _hand_built_tree()
    root.split_value = None

    assert root.path_length(1.0, accumulated_depth=3.0) == 3.0


def test_node_with_one_child_counts_as_leaf() -> None:
    node = IsolationTreeNode(height=0, size=4)
    node.split_value = 70.0
    node.left = IsolationTreeNode(height=1, size=4)

    assert node.path_length(65.0, accumulated_depth=2.0) == pytest.approx(
        2.0 + average_path_length(4)
    )
    np.testing.assert_allclose(
        node.path_lengths_batch(np.array([65.0, 75.0])), [average_path_length(4)] * 2
    )


class _TopOfRangeGenerator:
    """Stands in for a Generator whose uniform draw lands on the upper bound."""

    def uniform(self, low: float, high: float) -> float:
        return high


def test_split_draw_includes_the_maximum() -> None:
    values = [60.0, 65.0, 72.0, 72.0]
    root = build_tree(values, max_height=1, rng=_TopOfRangeGenerator())  # type: ignore[arg-type]

    assert root.split_value == 72.0
    assert root.left is not None and root.left.size == 2
    assert root.right is not None and root.right.size == 2


def test_batch_path_lengths_match_scalar_walk(rng: np.random.Generator) -> None:
    values = rng.normal(loc=70.0, scale=8.0, size=200)
    root = build_tree(values, max_height=8, rng=rng)
    queries = np.array([30.0, 55.0, 70.0, 71.5, 90.0, 250.0])

    batch = root.path_lengths_batch(queries)
    scalar = [root.path_length(q) for q in queries]

    np.testing.assert_allclose(batch, scalar)


def test_isolation_tree_fit_uses_a_shuffled_prefix(rng: np.random.Generator) -> None:
    values = np.arange(300, dtype=np.float64)
    tree = IsolationTree(max_height=max_tree_height(256)).fit(values, subsample_size=256, rng=rng)

    assert tree.root is not None
    assert tree.root.size == 256
    assert tree.training_values is not None
    assert len(np.unique(tree.training_values)) == 256
    assert set(tree.training_values) <= set(values)


def test_plot_partition_space(monkeypatch: pytest.MonkeyPatch, rng: np.random.Generator) -> None:
    shown: list[bool] = []
    monkeypatch.setattr(plt, "show", lambda: shown.append(True))

    tree = IsolationTree(max_height=4).fit(rng.normal(70.0, 5.0, size=16), 16, rng)
    tree.plot_partition_space_1D()

    assert shown == [True]
    assert len(plt.gca().lines) > 0
    plt.close("all")
