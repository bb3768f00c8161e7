"""
Query Normalizer
Turns a free-text activity label into the base term used for taxonomy lookup.

    >>> normalize_activity("Person SURFING a large wave")
    'surf wave'
    >>> normalize_activity("surf wave")
    'surf wave'
"""

import re
import unicodedata
from typing import Optional

# Words that describe the scene rather than the activity
FILLER_WORDS = {
    "a", "an", "the", "of", "in", "on", "at", "to", "with", "and", "for", "from",
    "person", "people", "man", "woman", "men", "women", "guy", "girl", "boy",
    "someone", "group", "couple", "friends", "tourist", "tourists",
    "large", "big", "small", "huge", "giant", "beautiful", "amazing",
    "doing", "enjoying", "having", "going", "some",
}

MIN_STEM_LENGTH = 3

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*")


def strip_accents(text: str) -> str:
    """'Lisboa' stays 'Lisboa', 'Görlitz' becomes 'Gorlitz'"""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _strip_once(word: str) -> str:
    if word.endswith("ing") and len(word) - 3 >= MIN_STEM_LENGTH:
        return word[:-3]
    if (
        word.endswith("s")
        and not word.endswith(("ss", "us", "is"))
        and len(word) - 1 >= MIN_STEM_LENGTH
    ):
        return word[:-1]
    return word


def stem_word(word: str) -> str:
    """Strip trailing 'ing' / 's' until the word stops changing"""
    previous = None
    while previous != word:
        previous = word
        word = _strip_once(word)
    return word


def normalize_activity(label: Optional[str]) -> str:
    """
    Normalize an activity label to its taxonomy key form.

    Lower-cases, drops accents and filler words, and stems every remaining
    token. Each token is stemmed to a fixed point, so the function is
    idempotent.

    Args:
        label: Free-text activity, e.g. "surfing" or "person surfing a large wave"

    Returns:
        str: Normalized base ("" when the label carries no usable words)
    """
    if not label:
        return ""

    text = strip_accents(label).lower()
    stems = [stem_word(t) for t in _TOKEN_RE.findall(text) if t not in FILLER_WORDS]
    return " ".join(s for s in stems if s not in FILLER_WORDS)
