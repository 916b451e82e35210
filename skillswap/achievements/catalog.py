"""Achievement catalog.

Each achievement is keyed by a stable id and unlocked when a single metric
reaches a threshold. Thresholds are compared with ``>=``, so a counter that
skips a value (a retried increment, a reconciliation) still unlocks the
milestone it passed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

# Metric names, matching the User counters they are read from.
SESSIONS_REQUESTED = "sessions_requested"
SESSIONS_COMPLETED = "sessions_completed"
SESSIONS_HOSTED = "sessions_hosted"
DISTINCT_STUDENTS = "distinct_students"
REVIEWS_WRITTEN = "reviews_written"
FIVE_STAR_REVIEWS = "five_star_reviews"


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    icon: str
    points: int
    metric: str
    threshold: int


ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement("session_seeker", "Session Seeker", "Requested your first session", "🔍", 15, SESSIONS_REQUESTED, 1),
    Achievement("first_session", "First Exchange", "Completed your first session", "🤝", 20, SESSIONS_COMPLETED, 1),
    Achievement("five_sessions", "Regular Learner", "Completed 5 sessions", "📈", 50, SESSIONS_COMPLETED, 5),
    Achievement("ten_sessions", "Dedicated Student", "Completed 10 sessions", "🎓", 100, SESSIONS_COMPLETED, 10),
    Achievement("first_tutor", "First Teaching", "Hosted your first session as tutor", "👨‍🏫", 25, SESSIONS_HOSTED, 1),
    Achievement("five_tutoring", "Rising Mentor", "Hosted 5 tutoring sessions", "⭐", 75, SESSIONS_HOSTED, 5),
    Achievement("ten_tutoring", "Expert Mentor", "Hosted 10 tutoring sessions", "🏆", 150, SESSIONS_HOSTED, 10),
    Achievement("community_helper", "Community Helper", "Helped 10 different students", "🤗", 100, DISTINCT_STUDENTS, 10),
    Achievement("first_review", "First Review", "Left your first review", "✍️", 10, REVIEWS_WRITTEN, 1),
    Achievement("ten_reviews", "Dedicated Reviewer", "Left 10 reviews", "📝", 50, REVIEWS_WRITTEN, 10),
    Achievement("five_star", "Five Star Tutor", "Received a 5-star review", "⭐", 30, FIVE_STAR_REVIEWS, 1),
)

ACHIEVEMENTS_BY_ID: dict[str, Achievement] = {a.id: a for a in ACHIEVEMENTS}


def due_achievements(
    metrics: Mapping[str, float],
    already_granted: Iterable[str] = (),
) -> list[Achievement]:
    """Achievements whose metric is present and at or above threshold, minus those held.

    Metrics absent from ``metrics`` are not evaluated: a completion that only
    reports tutor counters never touches student achievements.
    """
    held = set(already_granted)
    return [
        a for a in ACHIEVEMENTS
        if a.id not in held
        and a.metric in metrics
        and metrics[a.metric] >= a.threshold
    ]
