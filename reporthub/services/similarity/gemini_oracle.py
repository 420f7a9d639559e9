"""
Gemini Similarity Oracle - Gemini Vision image comparison.

Calls the Gemini REST API with both photos inline and asks for a JSON
verdict. Requires GEMINI_API_KEY.
"""

from reporthub.services.similarity.base import (
    SimilarityOracle,
    SimilarityResult,
    OracleError,
    TransientOracleError,
)
from typing import Dict, List, Optional
import base64
import json
import logging
import mimetypes

import requests

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}

COMPARISON_PROMPT = """You are an expert system for comparing civic infrastructure images for similarity.

Compare these two images and determine:
1. Are they showing the same or very similar civic issues?
2. Are they taken at the same or very nearby location?
3. What is the overall similarity percentage?

Consider:
- Same type of issue (pothole, garbage, street light, etc.)
- Similar location/environment
- Similar severity and characteristics
- Even if taken from different angles or at different times

Provide a similarity score from 0-100 where:
- 90-100: Definitely the same issue (different angles/times)
- 80-89: Very likely the same issue
- 60-79: Similar issue, possibly same location
- 40-59: Similar type of issue, different location
- 0-39: Different issues

Respond in JSON format:
{
  "similarityScore": number (0-100),
  "isSameIssue": boolean,
  "reasoning": "short explanation",
  "confidence": number (0-100)
}"""


class GeminiSimilarityOracle(SimilarityOracle):

    API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
    MODEL_VERSION = "v1beta"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        timeout_seconds: float = 30.0,
        uploads_dir: str = ".",
        session: Optional[requests.Session] = None
    ):
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.uploads_dir = uploads_dir
        self.session = session or requests.Session()
        self.enabled = bool(api_key and api_key.strip())

        if self.enabled:
            logger.info(f"Gemini similarity oracle initialized: {self.model}")
        else:
            logger.info("Gemini similarity oracle disabled: No API key configured")

    def is_enabled(self) -> bool:
        return self.enabled

    def get_model_info(self) -> Dict[str, str]:
        return {"name": self.model, "version": self.MODEL_VERSION}

    def compare(self, image_a: str, image_b: str) -> SimilarityResult:
        if not self.enabled:
            raise OracleError("Gemini API key not configured")

        return self._parse_response(self.generate_json(COMPARISON_PROMPT, [image_a, image_b]))

    def generate_json(self, prompt: str, photo_refs: List[str]) -> Dict:
        """
        Send the prompt with the photos inline and return the decoded JSON reply.

        Raises TransientOracleError for retryable failures and OracleError
        for everything else, including a reply that is not JSON.
        """
        if not self.enabled:
            raise OracleError("Gemini API key not configured")

        payload = {
            "contents": [{
                "parts": [{"text": prompt}] + [self._image_part(ref) for ref in photo_refs]
            }],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        data = self._post(payload)
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
            cleaned = text.replace("```json", "").replace("```", "").strip()
            parsed = json.loads(cleaned)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse Gemini response: {e}")
            raise OracleError(f"Unparseable Gemini response: {e}") from e
        if not isinstance(parsed, dict):
            raise OracleError("Unparseable Gemini response: expected a JSON object")
        return parsed

    def _image_part(self, photo_ref: str) -> Dict:
        path = self.resolve_photo(photo_ref)
        try:
            with open(path, "rb") as f:
                encoded = base64.b64encode(f.read()).decode("ascii")
        except OSError as e:
            raise OracleError(f"Could not read photo {photo_ref}: {e}") from e
        mime_type = mimetypes.guess_type(path)[0] or "image/jpeg"
        return {"inline_data": {"mime_type": mime_type, "data": encoded}}

    def _post(self, payload: Dict) -> Dict:
        url = f"{self.API_BASE_URL}/{self.model}:generateContent"
        try:
            response = self.session.post(
                url,
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout_seconds
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            raise TransientOracleError(f"Gemini request failed: {e}") from e

        if response.status_code in TRANSIENT_STATUS_CODES:
            raise TransientOracleError(f"Gemini API returned status {response.status_code}")
        if response.status_code != 200:
            raise OracleError(f"Gemini API returned status {response.status_code}: {response.text[:200]}")
        return response.json()

    def _parse_response(self, parsed: Dict) -> SimilarityResult:
        try:
            score = float(parsed["similarityScore"])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse Gemini similarity response: {e}")
            raise OracleError(f"Unparseable Gemini response: {e}") from e

        confidence = parsed.get("confidence")
        return SimilarityResult(
            score=score,
            reasoning=str(parsed.get("reasoning", "")),
            model_name=self.model,
            confidence=float(confidence) if confidence is not None else None,
        )
