"""
Resolution Verifier - before/after photo comparison for resolved reports.

DESIGN PRINCIPLES:
- The vision model judges whether the issue in the before photo is gone
- Transient model failures are retried like similarity comparisons
- Any other failure yields a NEEDS_REVIEW result, never a failed resolution
"""

from typing import Callable, Dict, Optional
import logging
import time

from reporthub.models.report import ResolutionVerification
from reporthub.services.similarity.base import OracleError
from reporthub.services.similarity.gemini_oracle import GeminiSimilarityOracle
from reporthub.services.similarity.registry import retry_transient

logger = logging.getLogger(__name__)

RECOMMENDATIONS = ("APPROVED", "NEEDS_REVIEW", "REJECTED")
QUALITY_LEVELS = ("EXCELLENT", "GOOD", "PARTIAL", "MINIMAL", "NONE")

RESOLUTION_PROMPT = """You are an expert system for verifying civic issue resolutions by comparing before and after photos.

Issue category: {category}
The first image shows the original problem. The second image shows the current state, claimed to be resolved.

Determine:
1. Is the original issue visible in the before image?
2. Has the issue been properly fixed in the after image?
3. What is the quality and completeness of the resolution?
4. Are there any remaining concerns or incomplete work?

Verification levels:
- 90-100: Excellent resolution, issue completely fixed
- 80-89: Good resolution, minor improvements possible
- 60-79: Partial resolution, issue improved but not fully resolved
- 40-59: Minimal resolution, significant issues remain
- 0-39: No resolution or different location, issue still present

Respond in JSON format:
{{
  "resolved": boolean,
  "verificationScore": number (0-100),
  "resolution_quality": "EXCELLENT|GOOD|PARTIAL|MINIMAL|NONE",
  "improvementDescription": "description of changes",
  "remainingConcerns": ["concern"],
  "publicRecommendation": "APPROVED|NEEDS_REVIEW|REJECTED",
  "confidence": number (0-100)
}}"""


def fallback_verification() -> ResolutionVerification:
    """Result used when the vision model cannot judge the resolution."""
    return ResolutionVerification(
        resolved=False,
        verification_score=50.0,
        quality="NEEDS_REVIEW",
        recommendation="NEEDS_REVIEW",
        improvement_description="Unable to verify resolution automatically",
        remaining_concerns=["AI verification not available", "Manual review required"],
        confidence=30.0,
        ai_processed=False,
        fallback_used=True,
    )


class ResolutionVerifier:

    def __init__(
        self,
        vision: Optional[GeminiSimilarityOracle],
        max_attempts: int = 3,
        retry_delay_seconds: float = 5.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.vision = vision
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self.sleep = sleep

    def is_enabled(self) -> bool:
        return self.vision is not None and self.vision.is_enabled()

    def verify(self, before_photo_ref: str, after_photo_ref: str, category: str) -> ResolutionVerification:
        if not self.is_enabled():
            logger.info("Vision model not configured, resolution needs manual review")
            return fallback_verification()

        prompt = RESOLUTION_PROMPT.format(category=category)
        try:
            parsed = retry_transient(
                lambda: self.vision.generate_json(prompt, [before_photo_ref, after_photo_ref]),
                max_attempts=self.max_attempts,
                retry_delay_seconds=self.retry_delay_seconds,
                sleep=self.sleep,
                label="Resolution verification",
            )
            return self._to_verification(parsed)
        except OracleError as e:
            logger.warning(f"Resolution verification failed, needs manual review: {e}")
            return fallback_verification()

    def _to_verification(self, parsed: Dict) -> ResolutionVerification:
        try:
            score = max(0.0, min(100.0, float(parsed["verificationScore"])))
            confidence = parsed.get("confidence")
            concerns = parsed.get("remainingConcerns") or []
            if isinstance(concerns, str):
                concerns = [concerns]
            verification = ResolutionVerification(
                resolved=bool(parsed.get("resolved", False)),
                verification_score=score,
                quality=str(parsed.get("resolution_quality", "NEEDS_REVIEW")).upper(),
                recommendation=str(parsed.get("publicRecommendation", "NEEDS_REVIEW")).upper(),
                improvement_description=str(parsed.get("improvementDescription", "")),
                remaining_concerns=[str(c) for c in concerns],
                confidence=float(confidence) if confidence is not None else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise OracleError(f"Unparseable resolution verdict: {e}") from e

        if verification.recommendation not in RECOMMENDATIONS:
            verification.recommendation = "NEEDS_REVIEW"
        if verification.quality not in QUALITY_LEVELS:
            verification.quality = "NEEDS_REVIEW"
        logger.info(
            f"Resolution verified: score {verification.verification_score:.0f}, "
            f"recommendation {verification.recommendation}"
        )
        return verification


def build_resolution_verifier(settings, sleep: Callable[[float], None] = time.sleep) -> ResolutionVerifier:
    vision = None
    if settings.AI_ENABLED:
        vision = GeminiSimilarityOracle(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            timeout_seconds=settings.AI_TIMEOUT_SECONDS,
            uploads_dir=settings.UPLOADS_DIR,
        )
    return ResolutionVerifier(
        vision,
        max_attempts=settings.SIMILARITY_MAX_RETRIES,
        retry_delay_seconds=settings.SIMILARITY_RETRY_DELAY_SECONDS,
        sleep=sleep,
    )
