"""Gamification: points, streaks, counters and badges."""

from .models import (
    BADGE_RULES,
    GAMIFICATION_TABLES_CQL,
    BadgeRule,
    ProfileEvent,
    ProfileEventKind,
    UserProfile,
)
from .stats import ProfileStatsEngine, fold_profile


__all__ = [
    "BADGE_RULES",
    "GAMIFICATION_TABLES_CQL",
    "BadgeRule",
    "ProfileEvent",
    "ProfileEventKind",
    "ProfileStatsEngine",
    "UserProfile",
    "fold_profile",
]
