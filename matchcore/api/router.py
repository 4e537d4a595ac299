"""
Matchcore — Main API Router

Aggregates all sub-routers under a single prefix so that ``matchcore.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from matchcore.api import compatibility, learning, mutual_matches, recommendations

router = APIRouter()

router.include_router(recommendations.router, prefix="/recommendations", tags=["Recommendations"])
router.include_router(compatibility.router, prefix="/compatibility", tags=["Compatibility"])
router.include_router(learning.router, prefix="/learning", tags=["Preference Learning"])
router.include_router(mutual_matches.router, prefix="/mutual-matches", tags=["Mutual Matches"])
