"""
Similarity Oracle Base Interface.

Defines the contract for image similarity providers used by duplicate
detection. Photo references are resolved against the uploads directory.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional
import logging
import os

logger = logging.getLogger(__name__)


class OracleError(Exception):
    """Definitive failure: retrying the same comparison will not help."""


class TransientOracleError(OracleError):
    """Retryable failure such as a timeout or an overloaded model."""


class SimilarityResult:
    """
    Standardized similarity response structure.

    score is 0-100. fallback_used marks a low-confidence estimate that did
    not come from the vision model.
    """

    def __init__(
        self,
        score: float,
        reasoning: str,
        model_name: str,
        confidence: Optional[float] = None,
        ai_processed: bool = True,
        fallback_used: bool = False,
        compared_at: Optional[datetime] = None
    ):
        self.score = max(0.0, min(100.0, float(score)))
        self.reasoning = reasoning
        self.model_name = model_name
        self.confidence = confidence
        self.ai_processed = ai_processed
        self.fallback_used = fallback_used
        self.compared_at = compared_at or datetime.now(timezone.utc)

    def to_dict(self) -> Dict:
        result = {
            "similarity_score": self.score,
            "reasoning": self.reasoning,
            "model_name": self.model_name,
            "ai_processed": self.ai_processed,
            "fallback_used": self.fallback_used,
            "compared_at": self.compared_at.isoformat(),
        }
        if self.confidence is not None:
            result["confidence"] = self.confidence
        return result


class SimilarityOracle(ABC):
    """
    Abstract base class for image similarity providers.

    compare() either returns a SimilarityResult or raises OracleError /
    TransientOracleError. A low score is a result, not an error.
    """

    uploads_dir: str = "."

    @abstractmethod
    def is_enabled(self) -> bool:
        pass

    @abstractmethod
    def get_model_info(self) -> Dict[str, str]:
        """Dict with 'name' and 'version' keys."""
        pass

    @abstractmethod
    def compare(self, image_a: str, image_b: str) -> SimilarityResult:
        pass

    def resolve_photo(self, photo_ref: str) -> str:
        """Map a stored photo reference to a filesystem path."""
        if os.path.isabs(photo_ref) and os.path.exists(photo_ref):
            return photo_ref
        relative = photo_ref.lstrip("/")
        if relative.startswith("uploads/"):
            relative = relative[len("uploads/"):]
        return os.path.join(self.uploads_dir, relative)

    def photo_exists(self, photo_ref: Optional[str]) -> bool:
        if not photo_ref:
            return False
        return os.path.isfile(self.resolve_photo(photo_ref))
