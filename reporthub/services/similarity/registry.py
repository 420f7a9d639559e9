"""
Similarity Oracle Registry.

Wraps the vision oracle with bounded retries and a file-size fallback so a
comparison always yields a result unless both providers fail.
"""

from reporthub.services.similarity.base import (
    SimilarityOracle,
    SimilarityResult,
    OracleError,
    TransientOracleError,
)
from reporthub.services.similarity.gemini_oracle import GeminiSimilarityOracle
from reporthub.services.similarity.file_size_oracle import FileSizeSimilarityOracle
from typing import Callable, Dict, Optional, TypeVar
import logging
import time

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_transient(
    call: Callable[[], T],
    max_attempts: int,
    retry_delay_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "Vision model"
) -> T:
    """Run call(), retrying TransientOracleError with a fixed delay. The last error propagates."""
    for attempt in range(1, max_attempts + 1):
        try:
            return call()
        except TransientOracleError as e:
            if attempt >= max_attempts:
                logger.warning(f"{label} still failing after {attempt} attempts: {e}")
                raise
            logger.info(
                f"{label} unavailable ({e}), retrying in {retry_delay_seconds}s "
                f"(attempt {attempt}/{max_attempts})"
            )
            sleep(retry_delay_seconds)
    raise OracleError(f"{label}: no attempts made")


class ResilientSimilarityOracle(SimilarityOracle):
    """
    Retry-then-fallback wrapper.

    - TransientOracleError: retried up to max_attempts with a fixed delay.
    - OracleError or anything unexpected: no retry, straight to fallback.
    - Fallback failures propagate as OracleError.
    """

    def __init__(
        self,
        primary: Optional[SimilarityOracle],
        fallback: SimilarityOracle,
        max_attempts: int = 3,
        retry_delay_seconds: float = 5.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.primary = primary
        self.fallback = fallback
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self.sleep = sleep
        self.uploads_dir = fallback.uploads_dir

    def is_enabled(self) -> bool:
        return True

    def get_model_info(self) -> Dict[str, str]:
        if self.primary is not None and self.primary.is_enabled():
            return self.primary.get_model_info()
        return self.fallback.get_model_info()

    def photo_exists(self, photo_ref: Optional[str]) -> bool:
        return self.fallback.photo_exists(photo_ref)

    def compare(self, image_a: str, image_b: str) -> SimilarityResult:
        if self.primary is not None and self.primary.is_enabled():
            result = self._compare_with_retries(image_a, image_b)
            if result is not None:
                return result
            logger.warning("All similarity comparison attempts failed, using fallback")
        return self.fallback.compare(image_a, image_b)

    def _compare_with_retries(self, image_a: str, image_b: str) -> Optional[SimilarityResult]:
        model_name = self.primary.get_model_info()["name"]
        try:
            return retry_transient(
                lambda: self.primary.compare(image_a, image_b),
                max_attempts=self.max_attempts,
                retry_delay_seconds=self.retry_delay_seconds,
                sleep=self.sleep,
                label=model_name,
            )
        except OracleError as e:
            logger.warning(f"{model_name} comparison failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected error from {model_name}: {e}", exc_info=True)
        return None


def build_similarity_oracle(settings, sleep: Callable[[float], None] = time.sleep) -> ResilientSimilarityOracle:
    """Build the oracle chain from settings: Gemini (if enabled and keyed) then file-size fallback."""
    fallback = FileSizeSimilarityOracle(uploads_dir=settings.UPLOADS_DIR)

    primary = None
    if settings.AI_ENABLED:
        primary = GeminiSimilarityOracle(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            timeout_seconds=settings.AI_TIMEOUT_SECONDS,
            uploads_dir=settings.UPLOADS_DIR,
        )
    else:
        logger.info("AI is disabled globally (AI_ENABLED=false), using file-size estimator only")

    return ResilientSimilarityOracle(
        primary=primary,
        fallback=fallback,
        max_attempts=settings.SIMILARITY_MAX_RETRIES,
        retry_delay_seconds=settings.SIMILARITY_RETRY_DELAY_SECONDS,
        sleep=sleep,
    )
