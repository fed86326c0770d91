"""Database models for learner gamification state.

The profile is derived: every qualifying completion is appended once to
``profile_events`` (``INSERT ... IF NOT EXISTS`` on a deterministic event
key), and ``user_profiles`` is recomputed from the whole event log. A
repeated or concurrent completion therefore cannot be counted twice.
"""

from collections.abc import Callable
from datetime import date, datetime
from enum import Enum
from typing import Any, NamedTuple
from uuid import UUID

from cyberlearn.core.clock import ensure_utc_aware


class ProfileEventKind(str, Enum):
    """Qualifying completion events."""

    LESSON_COMPLETED = "lesson_completed"
    QUIZ_PASSED = "quiz_passed"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

PROFILE_EVENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.profile_events (
    user_id UUID,
    event_key TEXT,
    kind TEXT,
    source_id UUID,
    points INT,
    occurred_at TIMESTAMP,
    PRIMARY KEY (user_id, event_key)
)
"""

USER_PROFILES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.user_profiles (
    user_id UUID PRIMARY KEY,
    points INT,
    current_streak INT,
    last_activity_date DATE,
    total_lessons_completed INT,
    total_quizzes_passed INT,
    badges LIST<TEXT>,
    updated_at TIMESTAMP,
    version INT
)
"""

GAMIFICATION_TABLES_CQL = [
    PROFILE_EVENTS_TABLE_CQL,
    USER_PROFILES_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class ProfileEvent:
    """One qualifying completion, recorded at most once per event key.

    Attributes:
        user_id: Learner UUID
        event_key: ``lesson:<lesson_id>`` or ``quiz:<id>``
        kind: Event kind
        source_id: Lesson id or submission id that produced the event
        points: Points awarded by this event
        occurred_at: When the completion happened
    """

    def __init__(
        self,
        user_id: UUID,
        event_key: str,
        kind: ProfileEventKind,
        source_id: UUID,
        points: int,
        occurred_at: datetime,
    ):
        self.user_id = user_id
        self.event_key = event_key
        self.kind = ProfileEventKind(kind)
        self.source_id = source_id
        self.points = points
        self.occurred_at = ensure_utc_aware(occurred_at)

    @classmethod
    def from_row(cls, row: Any) -> "ProfileEvent":
        """Create ProfileEvent instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            event_key=row.event_key,
            kind=ProfileEventKind(row.kind),
            source_id=row.source_id,
            points=row.points or 0,
            occurred_at=row.occurred_at,
        )

    def __repr__(self) -> str:
        return f"<ProfileEvent {self.event_key} +{self.points}>"


class UserProfile:
    """Learner gamification profile (derived from profile events).

    Attributes:
        user_id: Learner UUID
        points: Accumulated points
        current_streak: Consecutive calendar days with a qualifying event
        last_activity_date: Calendar date of the latest qualifying event
        total_lessons_completed: Distinct lessons completed
        total_quizzes_passed: Quiz passes counted
        badges: Earned badge ids in the order earned (append-only)
        updated_at: Last write
        version: Optimistic concurrency token, +1 on every write
    """

    def __init__(
        self,
        user_id: UUID,
        points: int = 0,
        current_streak: int = 0,
        last_activity_date: date | None = None,
        total_lessons_completed: int = 0,
        total_quizzes_passed: int = 0,
        badges: list[str] | None = None,
        updated_at: datetime | None = None,
        version: int = 0,
    ):
        self.user_id = user_id
        self.points = points
        self.current_streak = current_streak
        self.last_activity_date = last_activity_date
        self.total_lessons_completed = total_lessons_completed
        self.total_quizzes_passed = total_quizzes_passed
        self.badges = list(badges or [])
        self.updated_at = ensure_utc_aware(updated_at)
        self.version = version

    def same_stats(self, other: "UserProfile") -> bool:
        """True when both profiles carry the same derived values."""
        return (
            self.points == other.points
            and self.current_streak == other.current_streak
            and self.last_activity_date == other.last_activity_date
            and self.total_lessons_completed == other.total_lessons_completed
            and self.total_quizzes_passed == other.total_quizzes_passed
            and self.badges == other.badges
        )

    @classmethod
    def from_row(cls, row: Any) -> "UserProfile":
        """Create UserProfile instance from Cassandra row."""
        last_activity = row.last_activity_date
        # cassandra.util.Date -> datetime.date
        if last_activity is not None and not isinstance(last_activity, date):
            last_activity = last_activity.date()
        return cls(
            user_id=row.user_id,
            points=row.points or 0,
            current_streak=row.current_streak or 0,
            last_activity_date=last_activity,
            total_lessons_completed=row.total_lessons_completed or 0,
            total_quizzes_passed=row.total_quizzes_passed or 0,
            badges=list(row.badges or []),
            updated_at=row.updated_at,
            version=row.version or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "points": self.points,
            "current_streak": self.current_streak,
            "last_activity_date": self.last_activity_date,
            "total_lessons_completed": self.total_lessons_completed,
            "total_quizzes_passed": self.total_quizzes_passed,
            "badges": list(self.badges),
            "updated_at": self.updated_at,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return (
            f"<UserProfile user={self.user_id} points={self.points} "
            f"streak={self.current_streak} badges={len(self.badges)}>"
        )


# ==============================================================================
# Badges
# ==============================================================================


class BadgeRule(NamedTuple):
    """Threshold predicate awarding a badge."""

    badge_id: str
    description: str
    earned: Callable[[UserProfile], bool]


# Evaluated in this order; new badges are appended in this order
BADGE_RULES: tuple[BadgeRule, ...] = (
    BadgeRule(
        "first_lesson",
        "Completed a first lesson",
        lambda p: p.total_lessons_completed >= 1,
    ),
    BadgeRule(
        "lessons_10",
        "Completed 10 lessons",
        lambda p: p.total_lessons_completed >= 10,
    ),
    BadgeRule(
        "lessons_50",
        "Completed 50 lessons",
        lambda p: p.total_lessons_completed >= 50,
    ),
    BadgeRule(
        "first_quiz_passed",
        "Passed a first quiz",
        lambda p: p.total_quizzes_passed >= 1,
    ),
    BadgeRule(
        "quizzes_10",
        "Passed 10 quizzes",
        lambda p: p.total_quizzes_passed >= 10,
    ),
    BadgeRule("streak_3", "3-day streak", lambda p: p.current_streak >= 3),
    BadgeRule("streak_7", "7-day streak", lambda p: p.current_streak >= 7),
    BadgeRule("streak_30", "30-day streak", lambda p: p.current_streak >= 30),
    BadgeRule("points_1000", "Earned 1000 points", lambda p: p.points >= 1000),
)
