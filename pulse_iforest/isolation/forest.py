"""
This module contains the IsolationForest class that builds an ensemble of
isolation trees over a history of scalar samples and scores new values
against it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
import structlog
from joblib import Parallel, delayed

from ..errors import ForestBuildCancelled, InvalidParameterError
from .tree import IsolationTree, average_path_length, max_tree_height

if TYPE_CHECKING:
    from ..config import ForestConfig

logger = structlog.get_logger(__name__)

Forest = list[IsolationTree]

DEFAULT_THRESHOLD = 0.6


@dataclass(frozen=True)
class AnomalyVerdict:
    """Outcome of scoring one value against a history."""

    is_anomaly: bool
    score: float


def _fit_single_tree(
    seed: int,
    values: npt.NDArray[np.floating[Any]],
    subsample_size: int,
    max_height: int,
) -> IsolationTree:
    """
    Worker function to fit an isolation tree with a given seed.
    This function is designed to be called in parallel using joblib.
    Each worker builds its own generator from the seed so results do not depend on n_jobs.

    Args:
        seed: Random seed for this tree (integer).
        values: Historical samples of shape (n_samples,).
        subsample_size: Cap on the number of samples used for building the tree.
        max_height: Height at which nodes become leaves.
    Returns:
        Fitted IsolationTree instance.
    """
    rng = np.random.default_rng(seed)

    tree = IsolationTree(max_height=max_height)
    return tree.fit(values, subsample_size=subsample_size, rng=rng)


def _as_samples(values: npt.ArrayLike) -> npt.NDArray[np.floating[Any]]:
    values_arr = np.asarray(values, dtype=np.float64)
    if values_arr.ndim == 0:
        raise InvalidParameterError("expected a sequence of samples, got a scalar")
    if values_arr.ndim > 1:
        raise InvalidParameterError(
            f"expected a 1-D sequence of samples, got shape {values_arr.shape}"
        )
    return values_arr


class IsolationForest:
    """
    Ensemble of Isolation Trees for scoring scalar samples.

    The forest is not kept on the instance: build_forest returns it and the
    scoring methods take it back, so a single IsolationForest can be shared
    between threads. Callers should supply at least 2 historical samples for a
    meaningful score; fewer still produce a (degenerate) score.

    Attributes:
        num_trees: Number of trees in the ensemble.
        subsample_size: Cap on the samples used per tree, also the normalisation size.
        max_tree_height: ceil(log2(subsample_size)).
        n_jobs: Number of parallel jobs to run. -1 means using all processors.
        random_state: Seed or generator for the per-tree seeds. None draws fresh entropy per build.
    """
    def __init__(
        self,
        num_trees: int = 100,
        subsample_size: int = 256,
        n_jobs: int = 1,
        random_state: int | np.random.Generator | None = None,
    ) -> None:
        """
        Initialize an IsolationForest.
        Args:
            num_trees: Number of isolation trees to create in the ensemble.
            subsample_size: Maximum number of historical samples per tree.
            n_jobs: Number of parallel jobs to run for tree building.
                - If 1 (default): sequential execution (no parallelization)
                - If -1: use all available processors
                - If > 1: use specified number of processors
            random_state: If an integer, every build with the same data produces the
                same forest in both sequential and parallel modes. A Generator is
                consumed on every build.
        """
        if num_trees < 1:
            raise InvalidParameterError(f"num_trees must be at least 1, got {num_trees}")
        if subsample_size < 2:
            raise InvalidParameterError(
                f"subsample_size must be at least 2, got {subsample_size}"
            )
        if n_jobs == 0:
            raise InvalidParameterError("n_jobs must not be 0")

        self.num_trees = num_trees
        self.subsample_size = subsample_size
        self.max_tree_height = max_tree_height(subsample_size)
        self.n_jobs = n_jobs
        self.random_state = random_state

        self.expected_path_length = average_path_length(subsample_size)

    @classmethod
    def from_config(cls, config: ForestConfig) -> IsolationForest:
        return cls(
            num_trees=config.num_trees,
            subsample_size=config.subsample_size,
            n_jobs=config.n_jobs,
            random_state=config.random_state,
        )

    def _tree_seeds(self) -> npt.NDArray[np.int64]:
        if isinstance(self.random_state, np.random.Generator):
            rng = self.random_state
        else:
            rng = np.random.default_rng(self.random_state)
        MAX_INT = np.iinfo(np.int32).max
        return rng.integers(MAX_INT, size=self.num_trees)

    def build_forest(
        self,
        values: npt.ArrayLike,
        cancel_event: threading.Event | None = None,
    ) -> Forest:
        """
        Creates num_trees isolation trees, each grown on an independently
        shuffled prefix of the history.

        Args:
            values: Historical samples, any length (an empty history gives single-leaf trees).
            cancel_event: Checked before each tree when building sequentially and
                before dispatch when building in parallel.
        Returns:
            List of fitted IsolationTree instances.
        Raises:
            ForestBuildCancelled: If cancel_event was set during the build.
        """
        values_arr = _as_samples(values)
        seeds = self._tree_seeds()

        # Build trees in parallel or sequentially
        if self.n_jobs == 1:
            forest: Forest = []
            for seed in seeds:
                if cancel_event is not None and cancel_event.is_set():
                    raise ForestBuildCancelled(trees_built=len(forest))
                forest.append(
                    _fit_single_tree(seed, values_arr, self.subsample_size, self.max_tree_height)
                )
        else:
            if cancel_event is not None and cancel_event.is_set():
                raise ForestBuildCancelled(trees_built=0)
            trees_list = Parallel(n_jobs=self.n_jobs, backend="loky")(
                delayed(_fit_single_tree)(seed, values_arr, self.subsample_size, self.max_tree_height)
                for seed in seeds
            )
            forest = list(trees_list)  # type: ignore[arg-type]

        logger.debug(
            "forest_built",
            num_trees=len(forest),
            history_size=int(values_arr.shape[0]),
            subsample_size=min(self.subsample_size, int(values_arr.shape[0])),
            n_jobs=self.n_jobs,
        )
        return forest

    def _normalize(self, mean_depths: Any) -> Any:
        return 2.0 ** (-mean_depths / self.expected_path_length)

    def calculate_anomaly_score(self, value: float, forest: Forest) -> float:
        """
        Anomaly score in (0, 1] where higher scores indicate anomalies.
        Based on the formula: 2^(-mean_path_length / c(subsample_size)).
        Args:
            value: Query value.
            forest: Trees returned by build_forest.
        Returns:
            Anomaly score of value.
        """
        if not forest:
            raise InvalidParameterError("cannot score against an empty forest")

        mean_depth = float(np.mean([tree.path_length(value) for tree in forest]))
        return float(self._normalize(mean_depth))

    def scores(
        self, values: npt.ArrayLike, forest: Forest,
    ) -> npt.NDArray[np.floating[Any]]:
        """
        Anomaly scores are in (0, 1] where higher scores indicate anomalies.
        Args:
            values: Query values of shape (n_samples,).
            forest: Trees returned by build_forest.
        Returns:
            Anomaly scores for each value of shape (n_samples,).
        """
        if not forest:
            raise InvalidParameterError("cannot score against an empty forest")

        values_arr = _as_samples(values)
        depth_matrix = np.zeros((values_arr.shape[0], len(forest)))
        for tree_idx, tree in enumerate(forest):
            depth_matrix[:, tree_idx] = tree.path_lengths(values_arr)

        mean_depths = np.mean(depth_matrix, axis=1)
        return self._normalize(mean_depths)

    def analyze(
        self,
        historical_values: npt.ArrayLike,
        current_value: float,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> AnomalyVerdict:
        """
        Builds a fresh forest from the history and scores current_value against it.
        Args:
            historical_values: Samples preceding the current one.
            current_value: Value to judge.
            threshold: Scores strictly above this are anomalies.
        Returns:
            The verdict together with the continuous score.
        """
        forest = self.build_forest(historical_values)
        score = self.calculate_anomaly_score(current_value, forest)
        verdict = AnomalyVerdict(is_anomaly=score > threshold, score=score)

        logger.debug(
            "anomaly_scored",
            value=float(current_value),
            score=score,
            threshold=threshold,
            is_anomaly=verdict.is_anomaly,
        )
        return verdict

    def detect_anomalies(
        self,
        historical_values: npt.ArrayLike,
        current_value: float,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> bool:
        """
        Predict whether current_value is anomalous with respect to the history.
        """
        return self.analyze(historical_values, current_value, threshold).is_anomaly
