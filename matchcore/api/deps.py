"""
Matchcore — Service dependencies

Services are constructed once in the application lifespan and stored on
``app.state``; these helpers hand them to route functions via ``Depends``.
"""

from fastapi import Request

from matchcore.services.compatibility_service import CompatibilityScorer
from matchcore.services.mutual_match_service import MutualMatchDetector
from matchcore.services.preference_learner import PreferenceLearner
from matchcore.services.profile_service import ProfileService
from matchcore.services.recommendation_service import RecommendationEngine


def get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def get_compatibility_scorer(request: Request) -> CompatibilityScorer:
    return request.app.state.compatibility_scorer


def get_preference_learner(request: Request) -> PreferenceLearner:
    return request.app.state.preference_learner


def get_recommendation_engine(request: Request) -> RecommendationEngine:
    return request.app.state.recommendation_engine


def get_mutual_match_detector(request: Request) -> MutualMatchDetector:
    return request.app.state.mutual_match_detector
