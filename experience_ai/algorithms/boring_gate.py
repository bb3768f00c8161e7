"""
Boring / Irrelevant Gate
Short-circuits the pipeline before any catalog or provider call is made.

Verdicts:
- proceed:    go ahead and search
- boring:     activity recognized but low-value (transfers, queueing, dining...)
- irrelevant: no activity and no location to search for
"""

import re
from dataclasses import dataclass
from typing import Optional, Protocol

from loguru import logger

from ..config import settings
from ..schemas import GateVerdict
from .normalizer import normalize_activity


BORING_ACTIVITY_TERMS = [
    # Transfers & transit
    "transfer", "transfers", "airport", "taxi", "uber", "shuttle", "commute", "commuting",
    "bus ride", "train ride", "metro", "subway", "driving to", "traffic", "parking",
    "check-in", "check in",
    # Queueing & waiting
    "queue", "queueing", "queuing", "waiting", "wait in line", "standing in line",
    "boarding a plane", "boarding gate", "boarding pass", "flight boarding",
    # Nightlife logistics
    "club entry", "nightclub entry", "bottle service", "cover charge",
    # Errands
    "grocery", "groceries", "laundry", "packing", "sleeping", "hotel room",
]

# Boring only when they make up the whole activity ("eating breakfast"),
# not when they qualify one ("dinner cruise", "food tour")
GENERIC_ACTIVITY_WORDS = {
    "eat", "eating", "dine", "dining", "dinner", "lunch", "breakfast", "brunch", "meal",
    "restaurant", "coffee", "snack", "shopping", "having", "grabbing", "getting",
    "a", "an", "the", "out", "at", "some",
}

MESSAGE_BORING = "This looks like everyday logistics rather than an experience, so there is nothing to book here."
MESSAGE_IRRELEVANT = "We couldn't spot an activity or a place in this content. Try sharing a different video."


class BoringClassifier(Protocol):
    """isBoring(activity) -> bool"""

    async def is_boring(self, activity: str) -> bool:
        ...


class KeywordBoringClassifier:
    """
    Default boring-activity classifier.

    Flags an activity as boring when its label or its normalized base contains
    a BORING_ACTIVITY_TERMS phrase as whole words, or when every word of the
    label is a GENERIC_ACTIVITY_WORDS word.
    """

    def __init__(self, terms: Optional[list] = None, generic_words: Optional[set] = None):
        self.terms = [t.lower() for t in (terms or BORING_ACTIVITY_TERMS)]
        self.generic_words = {w.lower() for w in (generic_words or GENERIC_ACTIVITY_WORDS)}
        self._pattern = re.compile(r"\b(?:" + "|".join(re.escape(t) for t in self.terms) + r")\b")

    async def is_boring(self, activity: str) -> bool:
        label = (activity or "").lower()
        base = normalize_activity(activity)
        if self._pattern.search(label) or self._pattern.search(base):
            return True

        words = re.findall(r"[a-z]+", label)
        return bool(words) and all(word in self.generic_words for word in words)


@dataclass
class GateDecision:
    """Result of the boring/irrelevant gate"""
    verdict: GateVerdict
    message: Optional[str] = None

    @property
    def proceed(self) -> bool:
        return self.verdict == GateVerdict.PROCEED


class BoringGate:
    """
    Primary cost-control check: runs before any external call.

    Input with neither an activity nor a location is irrelevant whatever its
    confidence, since there is nothing to search for. This covers the
    low-confidence case; confidence_floor only tells the two apart in logs.

    Usage:
        gate = BoringGate(KeywordBoringClassifier())
        decision = await gate.evaluate("airport transfer", "Lisbon", 0.9)
        decision.verdict  # GateVerdict.BORING
    """

    def __init__(
        self,
        classifier: Optional[BoringClassifier] = None,
        confidence_floor: Optional[float] = None
    ):
        self.classifier = classifier or KeywordBoringClassifier()
        self.confidence_floor = settings.CONFIDENCE_FLOOR if confidence_floor is None else confidence_floor

    async def evaluate(
        self,
        activity: Optional[str],
        location: Optional[str],
        confidence: Optional[float] = None
    ) -> GateDecision:
        """
        Decide whether a query is worth searching for.

        Args:
            activity: Detected or requested activity label
            location: Detected or requested location
            confidence: Upstream classifier confidence (None when user-entered)

        Returns:
            GateDecision
        """
        activity = (activity or "").strip()
        location = (location or "").strip()

        if not activity and not location:
            if confidence is not None and confidence < self.confidence_floor:
                logger.info(f"[Gate] irrelevant: confidence {confidence:.2f} < {self.confidence_floor} and no signal")
            else:
                logger.info("[Gate] irrelevant: neither activity nor location present")
            return GateDecision(GateVerdict.IRRELEVANT, MESSAGE_IRRELEVANT)

        if activity:
            try:
                boring = await self.classifier.is_boring(activity)
            except Exception as e:
                logger.error(f"[Gate] boring classifier failed for '{activity}': {e}")
                boring = False

            if boring:
                logger.info(f"[Gate] boring: '{activity}'")
                return GateDecision(GateVerdict.BORING, MESSAGE_BORING)

        return GateDecision(GateVerdict.PROCEED)
