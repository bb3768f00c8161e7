"""
OpenAI-backed boring-activity classifier

Keyword list first (free); the model is only asked about activities the
keyword list lets through.
"""

import asyncio
from collections import OrderedDict
from typing import Optional

from loguru import logger
from openai import AsyncOpenAI

from ..algorithms.boring_gate import KeywordBoringClassifier
from ..config import settings
from .prompts import BORING_ACTIVITY_PROMPT


class OpenAIBoringClassifier:
    """isBoring(activity) with a keyword pre-check and an LLM second opinion"""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        keywords: Optional[KeywordBoringClassifier] = None,
        max_memo: Optional[int] = None
    ):
        self.model = model or settings.OPENAI_MODEL
        self.timeout = settings.LLM_TIMEOUT_SECONDS if timeout is None else timeout
        self.client = client or AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self.keywords = keywords or KeywordBoringClassifier()
        self.max_memo = settings.MEMO_MAX_ENTRIES if max_memo is None else max_memo
        self._verdicts: "OrderedDict[str, bool]" = OrderedDict()

    async def is_boring(self, activity: str) -> bool:
        if await self.keywords.is_boring(activity):
            return True

        key = (activity or "").lower().strip()
        if key in self._verdicts:
            self._verdicts.move_to_end(key)
            return self._verdicts[key]

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": BORING_ACTIVITY_PROMPT.format(activity=activity)}],
                    max_tokens=5,
                    temperature=0
                ),
                timeout=self.timeout
            )
        except Exception as e:
            logger.warning(f"Boring classifier LLM unavailable for '{activity}', assuming not boring: {e}")
            return False

        answer = (response.choices[0].message.content or "").strip().lower()
        boring = answer.startswith("boring")
        self._verdicts[key] = boring
        while len(self._verdicts) > self.max_memo:
            self._verdicts.popitem(last=False)
        logger.debug(f"Boring classifier: '{activity}' -> {answer}")
        return boring
