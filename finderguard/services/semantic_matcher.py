"""
Semantic matcher - optional, best-effort ranking by a generative model (Gemini).

The model's output is advisory: it is validated into a tagged result before the
ranker looks at it, and anything malformed is reported as a failure so the
deterministic scorer takes over. Only public fields are ever put in the prompt;
the reporting user's own image is the single non-text attachment.
"""

import asyncio
import base64
import binascii
import json
import logging
from functools import lru_cache
from typing import Literal, Protocol, Union

import google.generativeai as genai
from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, ValidationError

from finderguard.config import Settings
from finderguard.core.clock import ensure_utc
from finderguard.services.feature_extractor import extract_features
from finderguard.schemas.item import ItemPublic, MatchSubject

logger = logging.getLogger(__name__)


class SemanticScore(BaseModel):
    id: int = Field(validation_alias=AliasChoices("id", "lostItemId", "foundItemId"))
    confidence: float = Field(allow_inf_nan=False)
    reason: str = ""


class SemanticMatches(BaseModel):
    ok: Literal[True] = True
    matches: list[SemanticScore]


class SemanticFailure(BaseModel):
    ok: Literal[False] = False
    reason: str


SemanticResult = Union[SemanticMatches, SemanticFailure]

_SCORES_ADAPTER = TypeAdapter(list[SemanticScore])


class SemanticMatcher(Protocol):
    async def rank(self, subject: MatchSubject, candidates: list[ItemPublic]) -> SemanticResult: ...


def parse_semantic_response(raw: str | None, candidate_ids: set[int]) -> SemanticResult:
    """Validate raw model JSON. Ids the model invented are dropped, not trusted."""
    if not raw or not raw.strip():
        return SemanticFailure(reason="empty response")
    try:
        scores = _SCORES_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        return SemanticFailure(reason=f"malformed response ({exc.error_count()} validation errors)")
    known = [s for s in scores if s.id in candidate_ids]
    if len(known) != len(scores):
        logger.info("semantic matcher returned %d unknown candidate ids", len(scores) - len(known))
    return SemanticMatches(matches=known)


SYSTEM_INSTRUCTION = """
You are an expert Lost & Found matcher.
Compare the subject item against the list of candidate items of the opposite kind.
Rules:
1. Judge semantic similarity of description, category, colors, brand and visual details.
2. When a property is missing, rely on the properties that are present.
3. Different brands AND different colors means no match.
4. Return only candidates from the list; never invent ids.
5. Respond with a JSON array: [{"id": <candidate id>, "confidence": <0-100>, "reason": "<short>"}]
"""


def _summary(item: ItemPublic) -> dict:
    features = extract_features(item)
    return {
        "id": item.id,
        "kind": item.kind.value,
        "title": item.title,
        "category": item.category,
        "description": item.description or "No description provided",
        "colors": ", ".join(sorted(features.color_tokens)) or "Not specified",
        "brand": features.brand_token or "Not specified",
        "location": (item.location.address if item.location else None) or "Not specified",
        "hasImage": item.has_image,
        "reported": ensure_utc(item.created_at).date().isoformat(),
    }


def build_prompt(subject: MatchSubject, candidates: list[ItemPublic]) -> str:
    return (
        f"SUBJECT ({subject.kind.value.upper()}) ITEM:\n"
        f"{json.dumps(_summary(subject), indent=2)}\n\n"
        f"CANDIDATES (total {len(candidates)}):\n"
        f"{json.dumps([_summary(c) for c in candidates], indent=2)}\n"
    )


def image_part(image: str | None) -> dict | None:
    """Inline blob for a base64 data URI; remote URLs are not fetched."""
    if not image or not image.startswith("data:") or "," not in image:
        return None
    header, payload = image.split(",", 1)
    mime_type = header[len("data:"):].split(";")[0] or "image/jpeg"
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None
    return {"mime_type": mime_type, "data": data}


class GeminiSemanticMatcher:
    """Gemini-backed matcher. Blocking SDK calls run in a worker thread."""

    def __init__(self, api_key: str, model_name: str):
        genai.configure(api_key=api_key)
        self.model_name = model_name
        self._model = genai.GenerativeModel(model_name, system_instruction=SYSTEM_INSTRUCTION)

    def _generate(self, parts: list) -> str:
        response = self._model.generate_content(
            parts,
            generation_config={"response_mime_type": "application/json"},
        )
        return response.text

    async def rank(self, subject: MatchSubject, candidates: list[ItemPublic]) -> SemanticResult:
        parts: list = [build_prompt(subject, candidates)]
        attachment = image_part(subject.image)
        if attachment:
            parts.append(attachment)
        try:
            raw = await asyncio.to_thread(self._generate, parts)
        except Exception as exc:
            logger.warning("gemini call failed: model=%s error=%s", self.model_name, exc)
            return SemanticFailure(reason=f"model call failed: {type(exc).__name__}")
        return parse_semantic_response(raw, {c.id for c in candidates})


@lru_cache
def _gemini_matcher(api_key: str, model_name: str) -> GeminiSemanticMatcher:
    return GeminiSemanticMatcher(api_key, model_name)


def get_semantic_matcher(settings: Settings) -> SemanticMatcher | None:
    """Configured matcher, or None when no API key is set (deterministic scoring only)."""
    key = (settings.gemini_api_key or "").strip()
    if not key or key == "your_gemini_api_key":
        return None
    return _gemini_matcher(key, settings.gemini_model)
