"""
Matchcore — GeminiService: the production scoring oracle

Evaluates a pair of profile summaries with the Gemini LLM and returns raw
per-dimension compatibility estimates (0-100) together with a short
explanation, match reasons and potential concerns.  It orchestrates:

- Multi-model fallback chains with exponential-backoff retry
- A culturally grounded prompt (Madhubani / Mithila matrimony context)
- Robust JSON response parsing with multiple fallback strategies

The oracle is deliberately opaque: callers must not rely on determinism
across calls.  Results are cached downstream by ``CompatibilityScorer``.

Model fallback chain:
    gemini-3-pro-preview -> gemini-3-flash-preview -> gemini-2.5-flash
"""

from __future__ import annotations

import json
import re
from typing import Any

import google.generativeai as genai
import structlog
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from json_repair import repair_json
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from matchcore.config import get_settings

logger = structlog.get_logger("matchcore.services.gemini")

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

DIMENSIONS: list[str] = [
    "location", "education", "religious", "family", "lifestyle", "personality",
]

_CULTURAL_CONTEXTS: dict[str, str] = {
    "madhubani": (
        "Both people live in or near Madhubani district, Bihar (the Mithila "
        "region).  Families weigh village and block proximity, sect and "
        "biradari, joint versus nuclear family expectations, and the "
        "standing of each family in the community.  Education and stable "
        "occupation matter to parents; shared religious practice matters to "
        "the couple and both families."
    ),
}

RETRY_ATTEMPTS = 5


def _is_retryable_api_error(exc: BaseException) -> bool:
    """Return True if the exception signals a retryable Gemini API error.

    We retry on HTTP 429 (rate limit) and 500/503 (server-side transient)
    errors.  The google-generativeai SDK wraps these as various exception
    types, so we inspect both the type name and string representation.
    """
    exc_str = str(exc).lower()
    exc_type = type(exc).__name__.lower()

    if "429" in exc_str or "resource_exhausted" in exc_str:
        return True
    if "500" in exc_str or "503" in exc_str or "internal" in exc_str:
        return True
    if "resourceexhausted" in exc_type or "serviceunavailable" in exc_type:
        return True

    return False


class GeminiService:
    """Scoring oracle backed by the Gemini model chain.

    Implements the ``ScoringOracle`` protocol consumed by
    ``ScoreOracleAdapter``: ``evaluate(summary_a, summary_b, preferences)``
    returns a plain ``dict`` which the adapter validates.
    """

    # ── Initialisation ────────────────────────────────────────────────

    def __init__(self) -> None:
        """Configure the Gemini client, model fallback chain, and safety
        settings from ``get_settings()``.
        """
        settings = get_settings()

        genai.configure(api_key=settings.GEMINI_API_KEY)

        # Model fallback chain: primary -> fallback -> stable
        self._model_chain: list[str] = [
            settings.GEMINI_MODEL_PRIMARY,
            settings.GEMINI_MODEL_FALLBACK,
            settings.GEMINI_MODEL_STABLE,
        ]

        self._cultural_context = _CULTURAL_CONTEXTS.get(
            settings.CULTURAL_CONTEXT.lower(), ""
        )

        # Profiles routinely mention religion, caste and family; the default
        # filters block too many legitimate summaries.
        self._safety_settings = {
            HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
            HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_ONLY_HIGH,
            HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
            HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
        }

        self._generation_config = genai.GenerationConfig(
            max_output_tokens=settings.GEMINI_MAX_OUTPUT_TOKENS,
            response_mime_type="application/json",
        )

        logger.info(
            "gemini_service_initialised",
            model_chain=self._model_chain,
            cultural_context=settings.CULTURAL_CONTEXT,
        )

    # ══════════════════════════════════════════════════════════════════
    # Public API
    # ══════════════════════════════════════════════════════════════════

    async def evaluate(
        self,
        summary_a: dict[str, Any],
        summary_b: dict[str, Any],
        preferences: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Score the compatibility of profile A (the seeker) with profile B.

        Parameters
        ----------
        summary_a, summary_b:
            Serialized profile summaries (see
            ``ScoreOracleAdapter.summarise_profile``).
        preferences:
            Optional stated preferences of profile A.

        Returns
        -------
        dict
            ``{"overall", "location", ..., "personality", "explanation",
            "match_reasons", "potential_concerns", "model_used"}``.

        Raises
        ------
        RuntimeError
            If every model in the fallback chain fails.
        """
        prompt = self._build_compatibility_prompt(summary_a, summary_b, preferences)

        last_exception: Exception | None = None

        for model_name in self._model_chain:
            try:
                response_text = await self._call_gemini_with_retry(model_name, prompt)
                parsed = self._parse_json_response(response_text)
                parsed["model_used"] = model_name

                logger.debug(
                    "compatibility_evaluated",
                    model=model_name,
                    overall=parsed.get("overall"),
                )
                return parsed

            except Exception as exc:
                last_exception = exc
                logger.warning(
                    "model_fallback",
                    failed_model=model_name,
                    error=str(exc),
                )
                continue

        raise RuntimeError(
            f"All models in chain exhausted for compatibility evaluation. "
            f"Last error: {last_exception}"
        )

    # ══════════════════════════════════════════════════════════════════
    # Gemini transport
    # ══════════════════════════════════════════════════════════════════

    async def _call_gemini_with_retry(
        self,
        model_name: str,
        prompt: str,
    ) -> str:
        """Call a specific Gemini model with tenacity retry on transient
        errors.

        Uses exponential backoff: 1s initial wait, 2x multiplier, 60s
        max wait, up to five attempts.
        """
        model = genai.GenerativeModel(model_name)

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_retryable_api_error),
                stop=stop_after_attempt(RETRY_ATTEMPTS),
                wait=wait_exponential(multiplier=1, min=1, max=60, exp_base=2),
                reraise=True,
            ):
                with attempt:
                    logger.debug(
                        "gemini_call_attempt",
                        model=model_name,
                        attempt_number=attempt.retry_state.attempt_number,
                    )
                    response = await model.generate_content_async(
                        prompt,
                        safety_settings=self._safety_settings,
                        generation_config=self._generation_config,
                    )

                    if not response.candidates:
                        raise ValueError(
                            f"Gemini returned no candidates for model "
                            f"{model_name}. Prompt feedback: "
                            f"{response.prompt_feedback}"
                        )

                    text = response.text
                    if not text or not text.strip():
                        raise ValueError(
                            f"Gemini returned empty text for model {model_name}"
                        )

                    return text

        except RetryError as retry_err:
            logger.error(
                "gemini_retry_exhausted",
                model=model_name,
                attempts=RETRY_ATTEMPTS,
                last_error=str(retry_err.last_attempt.exception()),
            )
            raise retry_err.last_attempt.exception() from retry_err

    # ══════════════════════════════════════════════════════════════════
    # Prompt construction
    # ══════════════════════════════════════════════════════════════════

    def _build_compatibility_prompt(
        self,
        summary_a: dict[str, Any],
        summary_b: dict[str, Any],
        preferences: dict[str, Any] | None,
    ) -> str:
        sections = [
            "You are an experienced matchmaker assessing marriage compatibility.",
        ]
        if self._cultural_context:
            sections.append(f"CULTURAL CONTEXT:\n{self._cultural_context}")

        sections.append(
            "PROFILE A (the person looking for a match):\n"
            + json.dumps(summary_a, indent=2, ensure_ascii=False, default=str)
        )
        sections.append(
            "PROFILE B (the candidate):\n"
            + json.dumps(summary_b, indent=2, ensure_ascii=False, default=str)
        )
        if preferences:
            sections.append(
                "PROFILE A STATED PREFERENCES:\n"
                + json.dumps(preferences, indent=2, ensure_ascii=False, default=str)
            )

        dims = ", ".join(DIMENSIONS)
        sections.append(
            "TASK:\n"
            f"Score each dimension ({dims}) from 0 to 100, where 100 is an "
            "ideal fit and 50 is neutral.  Then give an overall score from 0 "
            "to 100 that reflects how families in this region would judge the "
            "match, not a plain average.  List up to four short match reasons "
            "and up to three potential concerns.  Mention the dimension name "
            "(location, education, religious, family) inside each concern."
        )
        sections.append(
            "Respond with ONLY a JSON object of this exact shape:\n"
            "{\n"
            '  "overall": <0-100>,\n'
            '  "location": <0-100>,\n'
            '  "education": <0-100>,\n'
            '  "religious": <0-100>,\n'
            '  "family": <0-100>,\n'
            '  "lifestyle": <0-100>,\n'
            '  "personality": <0-100>,\n'
            '  "explanation": "<two or three sentences>",\n'
            '  "match_reasons": ["<reason>", ...],\n'
            '  "potential_concerns": ["<concern>", ...]\n'
            "}"
        )
        return "\n\n".join(sections)

    # ══════════════════════════════════════════════════════════════════
    # Response parsing
    # ══════════════════════════════════════════════════════════════════

    def _parse_json_response(self, text: str) -> dict:
        """Parse a JSON response from Gemini using multiple fallback
        strategies.

        Pipeline:
        1. Direct ``json.loads`` on the raw text
        2. Markdown code-fence extraction
        3. Prefix/suffix stripping (first ``{`` to last ``}``)
        4. ``jsonrepair`` as a last resort

        Raises
        ------
        ValueError
            If no strategy can extract a JSON object.
        """
        if not text or not text.strip():
            raise ValueError("Empty response text, cannot parse JSON")

        cleaned = text.strip()

        # Strategy 1: Direct parse
        try:
            result = json.loads(cleaned)
            if isinstance(result, dict):
                return result
        except (json.JSONDecodeError, TypeError):
            pass

        # Strategy 2: Markdown code-fence extraction
        md_match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", cleaned, re.DOTALL)
        if md_match:
            try:
                result = json.loads(md_match.group(1).strip())
                if isinstance(result, dict):
                    return result
            except (json.JSONDecodeError, TypeError):
                pass

        # Strategy 3: Brace extraction
        first_brace = cleaned.find("{")
        last_brace = cleaned.rfind("}")
        candidate = None
        if first_brace >= 0 and last_brace > first_brace:
            candidate = cleaned[first_brace : last_brace + 1]
            try:
                result = json.loads(candidate)
                if isinstance(result, dict):
                    return result
            except (json.JSONDecodeError, TypeError):
                pass

        # Strategy 4: jsonrepair on the raw text, then on the brace candidate
        for source in (cleaned, candidate):
            if source is None:
                continue
            try:
                result = json.loads(repair_json(source))
            except Exception as exc:
                logger.debug("jsonrepair_failed", error=str(exc))
                continue
            if isinstance(result, dict):
                logger.info("json_parsed_via_jsonrepair", original_preview=cleaned[:80])
                return result

        raise ValueError(
            f"Failed to parse JSON from Gemini response. Preview: {cleaned[:200]}"
        )
