"""Configurable scoring weights and thresholds."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from datetime import datetime

logger = logging.getLogger(__name__)


DEFAULT_SOURCE_SCORES: Dict[str, int] = {
    "referral": 10,  # Highest quality
    "partner": 9,
    "existing_customer": 9,
    "website": 7,
    "social_media": 6,
    "email_campaign": 6,
    "trade_show": 5,
    "cold_call": 3,
    "purchased_list": 2,
    "unknown": 1,
}

DEFAULT_URGENT_KEYWORDS: List[str] = [
    "emergency", "urgent", "asap", "immediately", "damage", "broken",
]

# (minimum summed value, bonus) - highest matching tier wins
DEFAULT_VALUE_TIERS: List[Tuple[float, int]] = [
    (100000, 20),
    (50000, 15),
    (25000, 10),
    (10000, 5),
]


@dataclass
class ScoringConfig:
    """Scoring weights and temperature thresholds."""

    hot_threshold: int = 70
    warm_threshold: int = 40

    source_scores: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_SOURCE_SCORES))
    default_source_score: int = 5

    urgent_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_URGENT_KEYWORDS))
    value_tiers: List[Tuple[float, int]] = field(default_factory=lambda: list(DEFAULT_VALUE_TIERS))

    recent_days: int = 7
    close_window_days: int = 7

    updated_at: datetime = field(default_factory=datetime.now)


class ScoringConfigManager:
    """Load and persist scoring configuration as JSON."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or Path.home() / ".tb-lead-engine" / "scoring_config.json"
        self.config = self._load_config()

    def _load_config(self) -> ScoringConfig:
        """Load configuration from file, falling back to defaults."""
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError(f"expected a JSON object, got {type(data).__name__}")
                return ScoringConfig(
                    hot_threshold=data.get("hot_threshold", 70),
                    warm_threshold=data.get("warm_threshold", 40),
                    source_scores=data.get("source_scores", dict(DEFAULT_SOURCE_SCORES)),
                    default_source_score=data.get("default_source_score", 5),
                    urgent_keywords=data.get("urgent_keywords", list(DEFAULT_URGENT_KEYWORDS)),
                    value_tiers=[
                        (float(t[0]), int(t[1]))
                        for t in data.get("value_tiers", DEFAULT_VALUE_TIERS)
                    ],
                    recent_days=data.get("recent_days", 7),
                    close_window_days=data.get("close_window_days", 7),
                )
            except (OSError, ValueError, TypeError, IndexError, AttributeError) as e:
                logger.error(f"Error loading scoring config: {e}")

        return ScoringConfig()

    def save_config(self):
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "hot_threshold": self.config.hot_threshold,
            "warm_threshold": self.config.warm_threshold,
            "source_scores": self.config.source_scores,
            "default_source_score": self.config.default_source_score,
            "urgent_keywords": self.config.urgent_keywords,
            "value_tiers": [list(t) for t in self.config.value_tiers],
            "recent_days": self.config.recent_days,
            "close_window_days": self.config.close_window_days,
            "updated_at": self.config.updated_at.isoformat(),
        }
        with open(self.config_path, 'w') as f:
            json.dump(data, f, indent=2)

    def update_thresholds(self, hot: int, warm: int):
        """Update temperature thresholds."""
        if warm > hot:
            raise ValueError("warm threshold cannot exceed hot threshold")
        self.config.hot_threshold = hot
        self.config.warm_threshold = warm
        self.config.updated_at = datetime.now()
        self.save_config()

    def set_source_score(self, source: str, score: int):
        """Set the quality score for a lead source."""
        key = source.lower().replace(" ", "_")
        self.config.source_scores[key] = max(0, min(10, score))
        self.config.updated_at = datetime.now()
        self.save_config()

    def reset_to_defaults(self):
        """Reset configuration to defaults."""
        self.config = ScoringConfig()
        self.save_config()
