"""
Feature flag service implementation.
Decides per user whether the personalized strategies run or the request is
served from the non-personalized (trending) path.
"""
import hashlib
from typing import Optional

from recommender.config import get_settings
from recommender.models.interfaces import FeatureFlagService


class ConfigBasedFeatureFlagService(FeatureFlagService):
    """
    Feature flag service backed by application settings.

    Rollout buckets come from an MD5 hash of the user id, so a user keeps the
    same bucket across requests and processes.
    """

    def __init__(self, rollout_percentage: Optional[float] = None) -> None:
        """
        Args:
            rollout_percentage: Override for ROLLOUT_PERCENTAGE (0-100)
        """
        self._rollout_override = rollout_percentage

    @property
    def rollout_percentage(self) -> float:
        if self._rollout_override is not None:
            return self._rollout_override
        return float(get_settings().ROLLOUT_PERCENTAGE)

    def is_personalization_enabled(self, user_id: str) -> bool:
        return self.disabled_reason(user_id) is None

    def is_kill_switch_active(self) -> bool:
        return get_settings().KILL_SWITCH_ACTIVE

    def disabled_reason(self, user_id: str) -> Optional[str]:
        """
        Why personalization is off for this user.

        Returns:
            "kill_switch", "disabled" or "rollout"; None when enabled
        """
        if self.is_kill_switch_active():
            return "kill_switch"
        if not get_settings().PERSONALIZATION_ENABLED:
            return "disabled"
        if self.rollout_percentage < 100.0 and self.bucket(user_id) >= self.rollout_percentage:
            return "rollout"
        return None

    @staticmethod
    def bucket(user_id: str) -> int:
        """Stable rollout bucket in [0, 100)."""
        digest = hashlib.md5(user_id.encode()).digest()
        return int.from_bytes(digest[:4], byteorder="big") % 100

    def set_rollout_percentage(self, percentage: float) -> None:
        """Update rollout percentage (for dynamic configuration)."""
        self._rollout_override = max(0.0, min(100.0, percentage))
