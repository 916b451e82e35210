"""Achievement catalog and the idempotent evaluator that grants them."""

from skillswap.achievements.catalog import ACHIEVEMENTS, Achievement, due_achievements
from skillswap.achievements.evaluator import AchievementEvaluator, achievement_evaluator

__all__ = [
    "ACHIEVEMENTS",
    "Achievement",
    "AchievementEvaluator",
    "achievement_evaluator",
    "due_achievements",
]
