# app/domain/services/response_parser.py

from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence
import json
import logging
import re
import warnings

from pydantic import BaseModel, ValidationError, field_validator

from app.domain.errors import ParseError, UnresolvedCandidateWarning
from app.domain.models.product import Candidate, Recommendation
from app.domain.services.constants import (
    DEFAULT_MODEL_CONFIDENCE,
    DEFAULT_MODEL_REASON,
    DEFAULT_RECOMMENDATION_TYPE,
    MAX_REASON_CHARS,
    RECOMMENDATION_TYPES,
)
from app.utils.ids import normalize_product_id

logger = logging.getLogger(__name__)

# Regex to strip code fences (``` or ```json) from LLM output
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)

_decoder = json.JSONDecoder()


class ModelPick(BaseModel):
    """
    One element of the model's JSON array:
      {"productId": 123, "reason": "...", "confidence": 0.85, "recommendationType": "complementary"}
    Every field is coerced into range; only a usable productId is mandatory.
    """
    productId: str
    reason: str = DEFAULT_MODEL_REASON
    confidence: float = DEFAULT_MODEL_CONFIDENCE
    recommendationType: str = DEFAULT_RECOMMENDATION_TYPE

    @field_validator("productId", mode="before")
    @classmethod
    def _pid(cls, v):
        pid = normalize_product_id(v)
        if not pid:
            raise ValueError("missing productId")
        return pid

    @field_validator("reason", mode="before")
    @classmethod
    def _reason(cls, v):
        s = v.strip() if isinstance(v, str) else ""
        return s[:MAX_REASON_CHARS] if s else DEFAULT_MODEL_REASON

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v):
        try:
            f = float(v)
        except (TypeError, ValueError):
            return DEFAULT_MODEL_CONFIDENCE
        if f != f:  # NaN
            return DEFAULT_MODEL_CONFIDENCE
        return min(max(f, 0.0), 1.0)

    @field_validator("recommendationType", mode="before")
    @classmethod
    def _type(cls, v):
        s = str(v).strip().lower() if v is not None else ""
        return s if s in RECOMMENDATION_TYPES else DEFAULT_RECOMMENDATION_TYPE


def _strip_fences(s: str) -> str:
    """Remove ``` or ```json fences the LLM might add."""
    return _CODE_FENCE_RE.sub("", s).strip()


def extract_json_array(text: Any) -> List[Any]:
    """
    First decodable JSON array in free-form text that holds an object;
    the first array of any kind when none does.
    Raises ParseError when there is none.
    """
    if not isinstance(text, str) or not text.strip():
        raise ParseError("Empty LLM response")
    raw = _strip_fences(text)
    first: Optional[List[Any]] = None
    pos = raw.find("[")
    while pos != -1:
        try:
            value, _ = _decoder.raw_decode(raw, pos)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list):
            if any(isinstance(v, dict) for v in value):
                return value
            if first is None:
                first = value
        pos = raw.find("[", pos + 1)
    if first is not None:
        return first
    raise ParseError(f"No JSON array found in LLM response: {raw[:200]!r}")


def parse_recommendations(text: Any, candidates: Sequence[Candidate]) -> List[Recommendation]:
    """
    Turn raw model text into Recommendations over the known candidates.
    Malformed elements and unknown ids are dropped; the only error raised is ParseError.
    """
    picks = extract_json_array(text)
    by_id: Dict[str, Candidate] = {c.product.product_id: c for c in candidates}

    out: List[Recommendation] = []
    seen: set = set()
    for raw_pick in picks:
        if not isinstance(raw_pick, dict):
            logger.debug("parser skipped non-object element=%r", raw_pick)
            continue
        try:
            pick = ModelPick.model_validate(raw_pick)
        except ValidationError as e:
            logger.debug("parser skipped invalid element=%r err=%s", raw_pick, e.errors()[0].get("msg"))
            continue
        cand: Optional[Candidate] = by_id.get(pick.productId)
        if cand is None:
            logger.warning("parser unresolved product_id=%s", pick.productId)
            warnings.warn(f"Product {pick.productId} not found in candidates", UnresolvedCandidateWarning, stacklevel=2)
            continue
        if pick.productId in seen:
            continue
        seen.add(pick.productId)
        out.append(
            Recommendation.from_product(
                cand.product,
                reason=pick.reason,
                confidence=pick.confidence,
                recommendation_type=pick.recommendationType,
                source="model",
            )
        )
    logger.info("parser picks=%s resolved=%s", len(picks), len(out))
    return out
