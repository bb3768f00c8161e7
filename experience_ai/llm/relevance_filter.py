"""
Relevance Filter
Optional, LLM-assisted pruning of external candidates.

One batched call per invocation: the oracle sees a numbered list of titles and
returns the indices it judges relevant. The call is only made when the set is
larger than RELEVANCE_FILTER_THRESHOLD; smaller sets pass through unchanged.
Any oracle failure degrades to "no filtering".
"""

import asyncio
import json
import re
from typing import List, Optional, Protocol, Sequence

from loguru import logger
from openai import AsyncOpenAI

from ..config import settings
from ..schemas import Candidate
from .prompts import RELEVANCE_PROMPT


class RelevanceOracle(Protocol):
    """select_relevant(activity, titles) -> indices into titles"""

    async def select_relevant(self, activity: str, titles: Sequence[str]) -> List[int]:
        ...


def parse_indices(text: str) -> List[int]:
    """
    Read a JSON array of integers from an LLM reply.

    The whole reply (minus code fences) is tried first; otherwise the last
    bracketed group is used, so echoed titles like "[0] Surf Lesson" before
    the answer are skipped.

    Raises:
        ValueError: no array found or it holds non-integers
    """
    stripped = re.sub(r"^```(?:json)?\s*|\s*```$", "", (text or "").strip())
    try:
        values = json.loads(stripped)
    except ValueError:
        groups = re.findall(r"\[[^\[\]]*\]", stripped)
        if not groups:
            raise ValueError(f"No JSON array in oracle reply: {text!r}")
        values = json.loads(groups[-1])

    if not isinstance(values, list):
        raise ValueError(f"Oracle reply is not an array: {values!r}")
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        raise ValueError(f"Oracle reply holds non-integer indices: {values!r}")
    return values


class OpenAIRelevanceOracle:
    """Relevance oracle backed by an OpenAI chat model"""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self.model = model or settings.OPENAI_MODEL
        self.client = client or AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        logger.info(f"OpenAIRelevanceOracle initialized (model: {self.model})")

    async def select_relevant(self, activity: str, titles: Sequence[str]) -> List[int]:
        numbered = "\n".join(f"{i}. {title}" for i, title in enumerate(titles))
        prompt = RELEVANCE_PROMPT.format(activity=activity, numbered_titles=numbered)

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=200,
            temperature=0.1
        )
        return parse_indices(response.choices[0].message.content)


# ============================================
# Filter strategies
# ============================================

class IdentityFilter:
    """Below-threshold strategy: trust taxonomy ordering, keep everything"""

    async def apply(self, activity: str, candidates: List[Candidate]) -> List[Candidate]:
        return list(candidates)


class OracleFilter:
    """Above-threshold strategy: one batched oracle call"""

    def __init__(self, oracle: RelevanceOracle, timeout: Optional[float] = None):
        self.oracle = oracle
        self.timeout = settings.LLM_TIMEOUT_SECONDS if timeout is None else timeout

    async def apply(self, activity: str, candidates: List[Candidate]) -> List[Candidate]:
        titles = [c.title for c in candidates]

        try:
            indices = await asyncio.wait_for(
                self.oracle.select_relevant(activity, titles),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Relevance oracle timed out after {self.timeout}s, skipping filter")
            return list(candidates)
        except Exception as e:
            logger.error(f"Relevance oracle failed, skipping filter: {e}")
            return list(candidates)

        # Keep input order; ignore out-of-range indices
        keep = {i for i in indices if 0 <= i < len(candidates)}
        kept = [c for i, c in enumerate(candidates) if i in keep]

        dropped = [c.title for i, c in enumerate(candidates) if i not in keep]
        if dropped:
            logger.debug(f"Relevance filter dropped: {dropped}")
        logger.info(f"Relevance filter for '{activity}': {len(candidates)} -> {len(kept)}")
        return kept


class RelevanceFilter:
    """
    Strategy selector: size > threshold ? OracleFilter : IdentityFilter

    Usage:
        relevance = RelevanceFilter(oracle=OpenAIRelevanceOracle())
        kept = await relevance.apply("surfing", candidates)
    """

    def __init__(
        self,
        oracle: Optional[RelevanceOracle] = None,
        threshold: Optional[int] = None,
        timeout: Optional[float] = None
    ):
        self.threshold = settings.RELEVANCE_FILTER_THRESHOLD if threshold is None else threshold
        self.identity = IdentityFilter()
        self.oracle_filter = OracleFilter(oracle, timeout) if oracle is not None else None

        if self.oracle_filter is None:
            logger.warning("RelevanceFilter has no oracle, filtering disabled")

    def select(self, size: int):
        if self.oracle_filter is not None and size > self.threshold:
            return self.oracle_filter
        return self.identity

    async def apply(self, activity: Optional[str], candidates: List[Candidate]) -> List[Candidate]:
        if not activity:
            return list(candidates)
        return await self.select(len(candidates)).apply(activity, candidates)
