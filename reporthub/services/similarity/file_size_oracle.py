"""
File-size Similarity Estimator - fallback when the vision model is unavailable.

Compares file sizes only. Scores are capped at 50 so a fallback estimate can
never reach the duplicate threshold on its own.
"""

from reporthub.services.similarity.base import SimilarityOracle, SimilarityResult, OracleError
from typing import Dict
import logging
import os

logger = logging.getLogger(__name__)


class FileSizeSimilarityOracle(SimilarityOracle):

    MODEL_NAME = "file-size-heuristic"
    MODEL_VERSION = "1.0.0"
    MAX_SCORE = 50.0
    CONFIDENCE = 30.0

    def __init__(self, uploads_dir: str = "."):
        self.uploads_dir = uploads_dir

    def is_enabled(self) -> bool:
        """Always available."""
        return True

    def get_model_info(self) -> Dict[str, str]:
        return {"name": self.MODEL_NAME, "version": self.MODEL_VERSION}

    def compare(self, image_a: str, image_b: str) -> SimilarityResult:
        try:
            size_a = os.path.getsize(self.resolve_photo(image_a))
            size_b = os.path.getsize(self.resolve_photo(image_b))
        except OSError as e:
            raise OracleError(f"Could not stat photos for fallback comparison: {e}") from e

        avg_size = (size_a + size_b) / 2
        if avg_size == 0:
            raw_similarity = 100.0
        else:
            raw_similarity = max(0.0, 100 - (abs(size_a - size_b) / avg_size) * 100)

        return SimilarityResult(
            score=min(self.MAX_SCORE, raw_similarity),
            reasoning="Fallback comparison based on file size (AI not available)",
            model_name=self.MODEL_NAME,
            confidence=self.CONFIDENCE,
            ai_processed=False,
            fallback_used=True
        )
