"""
Image similarity oracles for duplicate detection.

Fails over to a file-size estimator and never blocks report submission.
"""

from reporthub.services.similarity.base import (
    SimilarityOracle,
    SimilarityResult,
    OracleError,
    TransientOracleError,
)
from reporthub.services.similarity.gemini_oracle import GeminiSimilarityOracle
from reporthub.services.similarity.file_size_oracle import FileSizeSimilarityOracle
from reporthub.services.similarity.registry import ResilientSimilarityOracle, build_similarity_oracle, retry_transient

__all__ = [
    "SimilarityOracle",
    "SimilarityResult",
    "OracleError",
    "TransientOracleError",
    "GeminiSimilarityOracle",
    "FileSizeSimilarityOracle",
    "ResilientSimilarityOracle",
    "build_similarity_oracle",
    "retry_transient",
]
