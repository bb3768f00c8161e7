"""
Content Analyzer
Figures out what a shared social media post shows: an activity, a landscape,
or nothing we can use.

1. Fetch the post page and read its OpenGraph thumbnail and caption
2. Ask an OpenAI vision model for {type, activity, location, confidence}
"""

import asyncio
import json
import re
from typing import Dict, Optional

import httpx
from bs4 import BeautifulSoup
from loguru import logger
from openai import AsyncOpenAI

from ..config import settings
from ..schemas import ContentAnalysis
from .prompts import CONTENT_ANALYSIS_PROMPT


class ContentAnalysisError(Exception):
    """The source content could not be understood"""


META_NAMES = ("og:image", "og:description", "og:title", "description")


def extract_page_metadata(page: str) -> Dict[str, str]:
    """OpenGraph tags (and plain description) from an HTML page"""
    metadata: Dict[str, str] = {}
    if not page:
        return metadata

    soup = BeautifulSoup(page, "html.parser")
    for tag in soup.find_all("meta"):
        name = (tag.get("property") or tag.get("name") or "").strip().lower()
        content = (tag.get("content") or "").strip()
        if name in META_NAMES and content:
            metadata.setdefault(name, content)
    return metadata


def parse_analysis(text: str, thumbnail_url: Optional[str] = None) -> ContentAnalysis:
    """
    Parse the model's JSON reply into a ContentAnalysis.

    Raises:
        ContentAnalysisError: no JSON object in the reply
    """
    match = re.search(r"\{[\s\S]*\}", text or "")
    if not match:
        raise ContentAnalysisError("No JSON in analysis response")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ContentAnalysisError(f"Malformed analysis response: {e}") from e

    content_type = str(data.get("type") or "unknown").lower()
    if content_type not in ("activity", "landscape"):
        content_type = "unknown"

    try:
        confidence = float(data.get("confidence") or 0)
    except (TypeError, ValueError):
        confidence = 0.0

    return ContentAnalysis(
        type=content_type,
        activity=(data.get("activity") or None),
        location=(data.get("location") or None),
        confidence=max(0.0, min(confidence, 1.0)),
        thumbnail_url=thumbnail_url,
    )


class ContentAnalyzer:
    """
    analyze(source_url) -> ContentAnalysis

    Usage:
        analyzer = ContentAnalyzer()
        analysis = await analyzer.analyze("https://www.instagram.com/reel/abc123/")
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.model = model or settings.OPENAI_VISION_MODEL
        self.timeout = settings.ANALYZER_TIMEOUT_SECONDS if timeout is None else timeout
        self._http_client = http_client

        self.client = client
        if self.client is None and settings.openai_enabled:
            self.client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
            logger.info(f"ContentAnalyzer: OpenAI client initialized (model: {self.model})")

    async def _fetch_metadata(self, source_url: str) -> Dict[str, str]:
        headers = {"User-Agent": settings.GEOCODER_USER_AGENT}
        try:
            if self._http_client is not None:
                response = await self._http_client.get(source_url, headers=headers, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=10.0, follow_redirects=True) as client:
                    response = await client.get(source_url, headers=headers)
            response.raise_for_status()
            return extract_page_metadata(response.text)
        except httpx.HTTPError as e:
            # The model can still work from the URL alone
            logger.warning(f"Could not fetch source page {source_url}: {e}")
            return {}

    async def analyze(self, source_url: str) -> ContentAnalysis:
        """
        Analyze a source URL.

        Raises:
            ContentAnalysisError: analyzer unavailable or reply unusable
        """
        if self.client is None:
            raise ContentAnalysisError("Content analyzer is not configured")

        logger.info(f"Content analysis started: {source_url}")
        metadata = await self._fetch_metadata(source_url)
        thumbnail_url = metadata.get("og:image")
        caption = metadata.get("og:description") or metadata.get("description") or metadata.get("og:title") or ""

        content = [{"type": "text", "text": CONTENT_ANALYSIS_PROMPT.format(caption=caption or source_url)}]
        if thumbnail_url:
            content.append({"type": "image_url", "image_url": {"url": thumbnail_url}})

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": content}],
                    max_tokens=300,
                    temperature=0.3
                ),
                timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise ContentAnalysisError(f"Content analysis timed out after {self.timeout}s") from e
        except Exception as e:
            raise ContentAnalysisError(f"Content analysis failed: {e}") from e

        analysis = parse_analysis(response.choices[0].message.content, thumbnail_url)
        logger.info(
            f"Content analysis complete: type={analysis.type.value} activity={analysis.activity} "
            f"location={analysis.location} confidence={analysis.confidence:.2f}"
        )
        return analysis
