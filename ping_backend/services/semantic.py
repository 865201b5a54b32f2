# ping_backend/services/semantic.py
"""
Name equivalence strategies used for duplicate detection
"""

import logging
import re
from typing import Iterable, List, Optional, Protocol

import httpx
from rapidfuzz import fuzz, process

from ..config import settings

logger = logging.getLogger(__name__)

DUPLICATE_PROMPT = """You are a semantic analysis assistant.
Your goal is to prevent duplicate entries at a location.
Compare the 'Candidate Name' against the 'Existing List'.
If the candidate is effectively the same thing as one in the list (synonyms like 'Hoops' vs 'Basketball', 'Gym' vs 'Fitness Center', or typos), return the EXACT name from the list.
If it is new and distinct, return 'NO'.
Be slightly strict: 'Tennis' and 'Table Tennis' are DIFFERENT."""

NAMES_MATCH_PROMPT = """You verify place names.
Answer 'YES' if the two names refer to the same real-world place (ignore case, punctuation, abbreviations and small typos), otherwise answer 'NO'.
Answer with a single word."""


class SemanticMatcher(Protocol):
    async def names_match(self, official_name: str, candidate_name: str) -> bool:
        ...

    async def find_duplicate(self, candidate_name: str, existing_names: Iterable[str]) -> Optional[str]:
        ...


def _pick_existing(answer: Optional[str], existing: List[str]) -> Optional[str]:
    """Return the member of existing equal to answer (case-insensitive)"""
    if not answer:
        return None
    answer = answer.strip().strip("'\"").strip()
    if not answer or answer.upper() == "NO":
        return None
    for name in existing:
        if name.lower() == answer.lower():
            return name
    return None


class LLMSemanticMatcher:
    """Chat-completion backed matcher. Any failure means "no match"."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.clean_openai_base_url).rstrip("/")
        self.model = model or settings.OPENAI_MODEL
        self.timeout = timeout or settings.EXTERNAL_TIMEOUT_SECONDS
        self._transport = transport
        if not self.api_key:
            logger.warning("OPENAI_API_KEY is not set, semantic matching is disabled")

    async def _call_api(self, system_prompt: str, user_prompt: str) -> Optional[str]:
        if not self.api_key:
            return None
        data = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0,
            "max_tokens": 50,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=data,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
                result = response.json()
            return result["choices"][0]["message"]["content"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Semantic matcher call failed: {e}")
            return None

    async def names_match(self, official_name: str, candidate_name: str) -> bool:
        if official_name.strip().lower() == candidate_name.strip().lower():
            return True
        answer = await self._call_api(
            NAMES_MATCH_PROMPT,
            f"Official name: {official_name}\nUser name: {candidate_name}",
        )
        return bool(answer) and answer.strip().upper().startswith("YES")

    async def find_duplicate(self, candidate_name: str, existing_names: Iterable[str]) -> Optional[str]:
        existing = [n for n in existing_names if n]
        if not existing:
            return None
        answer = await self._call_api(
            DUPLICATE_PROMPT,
            f"Existing List: {', '.join(existing)}\nCandidate Name: {candidate_name}",
        )
        match = _pick_existing(answer, existing)
        if match:
            logger.info(f"Semantic dedupe: '{candidate_name}' matched '{match}'")
        return match


class FuzzySemanticMatcher:
    """Deterministic matcher: word-order insensitive similarity (rapidfuzz)"""

    def __init__(self, threshold: Optional[float] = None):
        self.threshold = threshold if threshold is not None else settings.FUZZY_MATCH_THRESHOLD

    @staticmethod
    def normalize(name: str) -> str:
        name = re.sub(r"[^\w\s]", "", name.lower())
        return " ".join(name.split())

    def similarity(self, a: str, b: str) -> float:
        return fuzz.token_sort_ratio(self.normalize(a), self.normalize(b)) / 100.0

    async def names_match(self, official_name: str, candidate_name: str) -> bool:
        return self.similarity(official_name, candidate_name) >= self.threshold

    async def find_duplicate(self, candidate_name: str, existing_names: Iterable[str]) -> Optional[str]:
        choices = [n for n in existing_names if n]
        if not choices:
            return None
        best = process.extractOne(
            candidate_name,
            choices,
            scorer=fuzz.token_sort_ratio,
            processor=self.normalize,
            score_cutoff=self.threshold * 100,
        )
        if best is None:
            return None
        return best[0]


def build_semantic_matcher() -> SemanticMatcher:
    """Matcher selected by SEMANTIC_MATCHER"""
    if settings.SEMANTIC_MATCHER.lower() == "fuzzy":
        return FuzzySemanticMatcher()
    return LLMSemanticMatcher()
