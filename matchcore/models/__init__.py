"""
Matchcore — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from matchcore.models.profile import Profile
from matchcore.models.interest import Interest
from matchcore.models.compatibility import CompatibilityScoreRecord
from matchcore.models.learning import LearningDataRecord, MatchFeedback, UserInteraction
from matchcore.models.recommendation import MatchRecommendationRecord, RecommendationSession
from matchcore.models.mutual_match import MutualMatch
from matchcore.models.notification import Notification

__all__ = [
    "Profile",
    "Interest",
    "CompatibilityScoreRecord",
    "LearningDataRecord",
    "UserInteraction",
    "MatchFeedback",
    "MatchRecommendationRecord",
    "RecommendationSession",
    "MutualMatch",
    "Notification",
]
