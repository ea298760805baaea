"""Script to verify parallel forest builds match sequential ones.

Builds a forest over a synthetic week of heart-rate readings with n_jobs=1
(sequential) and n_jobs=-1 (parallel) using the same random_state, then
compares the anomaly scores of a range of query values.
"""

import sys

import numpy as np

from pulse_iforest import IsolationForest
from pulse_iforest.config import get_config
from pulse_iforest.logging_setup import configure_logging


def generate_heart_rates(n_samples=2000, random_state=42):
    """Generate resting heart rates with a few tachycardia spikes."""
    rng = np.random.default_rng(random_state)

    resting = rng.normal(loc=68.0, scale=4.0, size=int(n_samples * 0.98))
    spikes = rng.normal(loc=150.0, scale=10.0, size=int(n_samples * 0.02))

    values = np.concatenate([resting, spikes])
    rng.shuffle(values)
    return values


def check_isolation_forest_reproducibility():
    print("=" * 80)
    print("Checking IsolationForest Reproducibility")
    print("=" * 80)

    history = generate_heart_rates()
    queries = np.linspace(40.0, 200.0, 161)

    print("\n[1/3] Building with n_jobs=1 (sequential)...")
    if_seq = IsolationForest(num_trees=100, n_jobs=1, random_state=12345)
    scores_seq = if_seq.scores(queries, if_seq.build_forest(history))

    print("[2/3] Building with n_jobs=-1 (parallel)...")
    if_par = IsolationForest(num_trees=100, n_jobs=-1, random_state=12345)
    scores_par = if_par.scores(queries, if_par.build_forest(history))

    print("[3/3] Comparing results...")
    scores_match = np.allclose(scores_seq, scores_par, rtol=1e-9, atol=1e-12)
    verdicts_match = np.array_equal(scores_seq > 0.6, scores_par > 0.6)

    print(f"\n{'Results':.<40} {'Status'}")
    print("-" * 80)
    print(f"{'Scores identical (within tolerance)':<40} {'PASS' if scores_match else 'FAIL'}")
    print(f"{'Verdicts identical':<40} {'PASS' if verdicts_match else 'FAIL'}")

    if not (scores_match and verdicts_match):
        print("\nScore difference stats:")
        print(f"  Max absolute difference: {np.max(np.abs(scores_seq - scores_par)):.2e}")
        print(f"  Mean absolute difference: {np.mean(np.abs(scores_seq - scores_par)):.2e}")

    return scores_match and verdicts_match


def main():
    configure_logging(get_config().logging)
    passed = check_isolation_forest_reproducibility()
    print("\n" + "=" * 80)
    print(f"IsolationForest: {'PASS' if passed else 'FAIL'}")
    print("=" * 80)
    return 0 if passed else 1


if __name__ == "__main__":
    sys.exit(main())
