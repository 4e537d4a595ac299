"""
Matchcore — ScoreOracleAdapter

Wraps the opaque scoring oracle (``GeminiService`` in production, a fake in
tests).  The adapter owns the two boundaries around it:

- outbound: ``summarise_profile`` decides what the oracle may see about a
  profile (no names, contact details or photos);
- inbound: ``evaluate`` validates and clamps whatever comes back into an
  ``OracleScores`` so downstream code never handles raw oracle payloads.
"""

from __future__ import annotations

import math
from typing import Any, Protocol

import structlog

from matchcore.exceptions import DependencyFailure
from matchcore.models.profile import Profile
from matchcore.schemas.compatibility import OracleScores
from matchcore.schemas.preferences import UserPreferences

logger = structlog.get_logger("matchcore.services.score_oracle")

_SCORE_FIELDS = ("overall", "location", "education", "religious", "family", "lifestyle", "personality")

# Older oracle prompts answered in camelCase.
_KEY_ALIASES = {
    "compatibilityScore": "overall",
    "overallScore": "overall",
    "overall_score": "overall",
    "locationScore": "location",
    "educationScore": "education",
    "religiousScore": "religious",
    "familyScore": "family",
    "lifestyleScore": "lifestyle",
    "personalityScore": "personality",
    "matchReasons": "match_reasons",
    "potentialConcerns": "potential_concerns",
}

_SUMMARY_FIELDS = (
    "age", "gender", "district", "block", "village", "education", "occupation",
    "skills", "sect", "sub_sect", "biradari", "religious_practice",
    "family_background", "family_type", "marital_status", "bio",
)


class ScoringOracle(Protocol):
    async def evaluate(
        self,
        summary_a: dict[str, Any],
        summary_b: dict[str, Any],
        preferences: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        ...


def _as_score(value: Any, field: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise DependencyFailure(
            "scoring_oracle", f"non-numeric value for '{field}': {value!r}"
        ) from None
    if math.isnan(number):
        raise DependencyFailure("scoring_oracle", f"NaN value for '{field}'")
    return max(0.0, min(100.0, number))


def _as_text_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(v) for v in value if str(v).strip()]


class ScoreOracleAdapter:
    """Typed, clamped access to a ``ScoringOracle``."""

    def __init__(self, oracle: ScoringOracle) -> None:
        self._oracle = oracle

    @staticmethod
    def summarise_profile(profile: Profile) -> dict[str, Any]:
        return {field: getattr(profile, field) for field in _SUMMARY_FIELDS}

    async def evaluate(
        self,
        user: Profile,
        candidate: Profile,
        preferences: UserPreferences | None = None,
    ) -> OracleScores:
        try:
            raw = await self._oracle.evaluate(
                self.summarise_profile(user),
                self.summarise_profile(candidate),
                preferences.model_dump() if preferences else None,
            )
        except DependencyFailure:
            raise
        except Exception as exc:
            logger.warning(
                "oracle_call_failed",
                user_id=str(user.user_id),
                candidate_user_id=str(candidate.user_id),
                error=str(exc),
            )
            raise DependencyFailure("scoring_oracle", str(exc)) from exc

        return self.normalise(raw)

    @staticmethod
    def normalise(raw: Any) -> OracleScores:
        """Map an oracle payload onto ``OracleScores``.

        A missing per-dimension score falls back to the overall score; a
        missing overall score makes the payload unusable.
        """
        if not isinstance(raw, dict):
            raise DependencyFailure("scoring_oracle", f"expected an object, got {type(raw).__name__}")

        payload = {_KEY_ALIASES.get(k, k): v for k, v in raw.items()}
        if payload.get("overall") is None:
            raise DependencyFailure("scoring_oracle", "response is missing the overall score")

        overall = _as_score(payload["overall"], "overall")
        scores = {
            field: _as_score(payload[field], field) if payload.get(field) is not None else overall
            for field in _SCORE_FIELDS
        }

        return OracleScores(
            **scores,
            explanation=str(payload.get("explanation") or ""),
            match_reasons=_as_text_list(payload.get("match_reasons")),
            potential_concerns=_as_text_list(payload.get("potential_concerns")),
        )
