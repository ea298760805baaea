"""
Heart-rate monitoring on top of the isolation forest.

The most recent reading inside the window is the value under test, every
earlier reading in the window is its history.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

import structlog
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from .config import AppConfig, MonitorConfig
from .isolation import DEFAULT_THRESHOLD, AnomalyVerdict, IsolationForest

logger = structlog.get_logger(__name__)


class HeartRateSample(BaseModel):
    """Single heart-rate reading."""

    model_config = ConfigDict(frozen=True)

    timestamp: AwareDatetime
    bpm: float = Field(gt=0.0, description="Beats per minute")


class HeartRateMonitor:
    """Feeds a sliding window of heart-rate readings to an IsolationForest."""

    def __init__(
        self,
        forest: IsolationForest | None = None,
        config: MonitorConfig | None = None,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        self.forest = forest or IsolationForest()
        self.config = config or MonitorConfig()
        self.threshold = threshold
        self.logger = logger.bind(component="heart_rate_monitor")

    @classmethod
    def from_config(cls, config: AppConfig) -> HeartRateMonitor:
        return cls(
            forest=IsolationForest.from_config(config.forest),
            config=config.monitor,
            threshold=config.forest.threshold,
        )

    def window(
        self, samples: Iterable[HeartRateSample], now: datetime | None = None,
    ) -> list[HeartRateSample]:
        """Readings from the last window_days up to now, oldest first."""
        now = now or datetime.now(UTC)
        start = now - timedelta(days=self.config.window_days)
        in_window = [s for s in samples if start <= s.timestamp <= now]
        return sorted(in_window, key=lambda s: s.timestamp)

    def analyze_patterns(
        self, samples: Iterable[HeartRateSample], now: datetime | None = None,
    ) -> AnomalyVerdict | None:
        """
        Score the latest reading against the earlier ones in the window.
        Returns None when the window holds fewer than min_samples readings.
        """
        readings = self.window(samples, now)
        if len(readings) < self.config.min_samples:
            self.logger.info(
                "insufficient_heart_rate_data",
                samples_in_window=len(readings),
                min_samples=self.config.min_samples,
            )
            return None

        historical = [s.bpm for s in readings[:-1]]
        current = readings[-1]
        verdict = self.forest.analyze(historical, current.bpm, self.threshold)

        if verdict.is_anomaly:
            self.logger.warning(
                "heart_rate_anomaly_detected",
                bpm=current.bpm,
                score=verdict.score,
                timestamp=current.timestamp.isoformat(),
            )
        return verdict

    def detect_anomalies(
        self, samples: Iterable[HeartRateSample], now: datetime | None = None,
    ) -> bool:
        """True when the latest reading is anomalous, False when it is not or data is insufficient."""
        verdict = self.analyze_patterns(samples, now)
        return verdict is not None and verdict.is_anomaly
