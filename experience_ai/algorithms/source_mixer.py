"""
Source Mixer
Combines internal and external candidates under the per-mode policy.

NearYou:       up to MAX_INTERNAL_CAP internal first, external fills to TARGET_COUNT
AsSeenOnReel:  external only, truncated to TARGET_COUNT
"""

from typing import List, Optional

from loguru import logger

from ..config import settings
from ..schemas import Candidate, CandidateSource, MatchResult, Mode


def dedupe_candidates(candidates: List[Candidate]) -> List[Candidate]:
    """Drop repeated (source, id) pairs, first occurrence wins"""
    seen = set()
    unique = []
    for candidate in candidates:
        if candidate.identity in seen:
            continue
        seen.add(candidate.identity)
        unique.append(candidate)
    return unique


class SourceMixer:
    """
    Mixes internal and external candidate lists into a MatchResult.

    Usage:
        mixer = SourceMixer(target_count=8, max_internal_cap=3)
        result = mixer.mix(internal, external, Mode.NEAR_YOU)
    """

    def __init__(self, target_count: Optional[int] = None, max_internal_cap: Optional[int] = None):
        self.target_count = settings.TARGET_COUNT if target_count is None else target_count
        self.max_internal_cap = settings.MAX_INTERNAL_CAP if max_internal_cap is None else max_internal_cap

    def mix(
        self,
        internal: List[Candidate],
        external: List[Candidate],
        mode: Mode,
        message: Optional[str] = None
    ) -> MatchResult:
        """
        Build the final, capped result list.

        Args:
            internal: Ranked internal candidates
            external: Filtered, ordered external candidates
            mode: Mixing policy
            message: Optional user-facing note carried on the result

        Returns:
            MatchResult with len(candidates) <= target_count
        """
        internal = [c for c in dedupe_candidates(internal) if c.source == CandidateSource.INTERNAL]
        external = [c for c in dedupe_candidates(external) if c.source == CandidateSource.EXTERNAL]

        if mode == Mode.AS_SEEN_ON_REEL:
            chosen_internal: List[Candidate] = []
        else:
            chosen_internal = internal[: min(self.max_internal_cap, self.target_count)]

        remaining = self.target_count - len(chosen_internal)
        chosen_external = external[: max(remaining, 0)]

        result = MatchResult.from_candidates(chosen_internal + chosen_external, message=message)

        logger.info(
            f"Mixed results ({mode.value}): {result.counts.internal} internal + "
            f"{result.counts.external} external (target {self.target_count})"
        )
        return result
