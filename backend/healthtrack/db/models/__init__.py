"""ORM models exposed for metadata discovery."""
from healthtrack.db.models.goal import SleepGoal, WeightGoal
from healthtrack.db.models.recommendation import RecommendationJob
from healthtrack.db.models.timed_session import TimedSession
from healthtrack.db.models.user_settings import UserSettings
from healthtrack.db.models.weight_entry import WeightEntry

__all__ = [
    "RecommendationJob",
    "SleepGoal",
    "TimedSession",
    "UserSettings",
    "WeightEntry",
    "WeightGoal",
]
