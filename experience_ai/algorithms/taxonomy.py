"""
Activity Taxonomy
Declarative table of activities, grouped by domain.

Each canonical activity carries:
- broad:   synonym terms used for internal catalog keyword matching
- strict:  narrower related terms used only to diversify low-signal matches
- aliases: other spellings that should resolve to the same activity

Extending the taxonomy means adding data here; retrieval code never branches
on specific activities.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from loguru import logger

from .normalizer import normalize_activity


ACTIVITY_TAXONOMY: Dict[str, Dict[str, Dict[str, List[str]]]] = {
    "water": {
        "surf": {
            "broad": ["surf", "surfing", "surf lesson", "surf school", "surf camp", "bodyboard", "wave", "longboard"],
            "strict": ["surfing", "bodyboard", "wave", "surf lesson"],
            "aliases": ["surfer"],
        },
        "kitesurf": {
            "broad": ["kitesurf", "kitesurfing", "kiteboarding", "kite surf", "kite"],
            "strict": ["kiteboarding", "windsurf"],
            "aliases": ["kiteboard", "kite surf"],
        },
        "windsurf": {
            "broad": ["windsurf", "windsurfing", "wind surf"],
            "strict": ["kitesurf", "sailing"],
            "aliases": [],
        },
        "scuba": {
            "broad": ["scuba", "diving", "dive", "padi", "underwater", "snorkel", "snorkeling"],
            "strict": ["snorkeling", "dive", "freediving"],
            "aliases": ["div", "diver", "freediv"],
        },
        "snorkel": {
            "broad": ["snorkel", "snorkeling", "reef", "underwater", "diving"],
            "strict": ["diving", "reef", "boat trip"],
            "aliases": [],
        },
        "kayak": {
            "broad": ["kayak", "kayaking", "canoe", "canoeing", "paddle", "sea kayak"],
            "strict": ["canoe", "stand up paddle", "sea kayak"],
            "aliases": ["canoe"],
        },
        "paddleboard": {
            "broad": ["paddleboard", "paddle board", "stand up paddle", "sup", "paddle"],
            "strict": ["kayak", "stand up paddle"],
            "aliases": ["stand up paddle", "paddle board"],
        },
        "sail": {
            "broad": ["sail", "sailing", "sailboat", "catamaran", "yacht", "boat"],
            "strict": ["catamaran", "yacht"],
            "aliases": ["catamaran", "yacht"],
        },
        "raft": {
            "broad": ["raft", "rafting", "white water", "whitewater", "river"],
            "strict": ["white water", "canyoning"],
            "aliases": ["white water", "whitewater"],
        },
        "jet ski": {
            "broad": ["jet ski", "jetski", "jet-ski", "wave runner", "seadoo"],
            "strict": ["jetski", "boat"],
            "aliases": ["jetski", "jet-ski"],
        },
        "coasteer": {
            "broad": ["coasteering", "cliff jump", "cliff jumping", "rock jump"],
            "strict": ["cliff jump", "canyoning"],
            "aliases": ["cliff jump"],
        },
        "swim": {
            "broad": ["swim", "swimming", "open water", "wild swim"],
            "strict": ["open water", "snorkel"],
            "aliases": ["swimm"],
        },
        "fish": {
            "broad": ["fish", "fishing", "angling", "deep sea fishing"],
            "strict": ["deep sea fishing", "boat"],
            "aliases": ["angl"],
        },
    },
    "land": {
        "hik": {
            "broad": ["hike", "hiking", "trek", "trekking", "trail", "walk in nature"],
            "strict": ["trekking", "trail"],
            "aliases": ["hike", "trek"],
        },
        "climb": {
            "broad": ["climb", "climbing", "rock climbing", "bouldering", "via ferrata", "rappel", "abseil"],
            "strict": ["bouldering", "via ferrata", "abseil"],
            "aliases": ["boulder", "via ferrata", "abseil", "rappel"],
        },
        "bik": {
            "broad": ["bike", "biking", "cycling", "mountain bike", "mtb", "e-bike"],
            "strict": ["mountain bike", "cycling"],
            "aliases": ["bike", "cycl", "mtb"],
        },
        "horse": {
            "broad": ["horse", "horseback", "horse riding", "equestrian", "pony"],
            "strict": ["horseback", "horse riding"],
            "aliases": ["horseback", "equestrian"],
        },
        "quad": {
            "broad": ["quad", "atv", "buggy", "4x4", "off-road", "offroad", "jeep"],
            "strict": ["atv", "buggy", "jeep safari"],
            "aliases": ["atv", "buggy", "4x4", "off-road", "offroad"],
        },
        "sandboard": {
            "broad": ["sandboard", "sandboarding", "dune", "dune bashing"],
            "strict": ["dune", "quad"],
            "aliases": ["dune bash"],
        },
        "canyon": {
            "broad": ["canyoning", "canyon", "gorge", "waterfall jump"],
            "strict": ["canyoning", "rafting"],
            "aliases": [],
        },
        "zipline": {
            "broad": ["zipline", "zip line", "zip-line", "canopy tour", "adventure park"],
            "strict": ["zip line", "adventure park"],
            "aliases": ["zip line", "zip-line"],
        },
        "cave": {
            "broad": ["caving", "cave", "spelunking", "grotto"],
            "strict": ["spelunking", "grotto"],
            "aliases": ["cav", "spelunk", "grotto"],
        },
        "yoga": {
            "broad": ["yoga", "retreat", "meditation", "pilates"],
            "strict": ["yoga retreat", "meditation"],
            "aliases": [],
        },
    },
    "air": {
        "skydiv": {
            "broad": ["skydive", "skydiving", "tandem jump", "freefall", "parachute"],
            "strict": ["tandem jump", "freefall"],
            "aliases": ["skydive", "sky div", "parachut", "freefall"],
        },
        "paraglid": {
            "broad": ["paragliding", "paraglide", "parapente", "hang gliding", "tandem flight"],
            "strict": ["parapente", "tandem flight", "hang gliding"],
            "aliases": ["paraglide", "parapente", "hang glid"],
        },
        "balloon": {
            "broad": ["hot air balloon", "balloon", "balloon ride", "balloon flight"],
            "strict": ["balloon flight", "sunrise balloon"],
            "aliases": [],
        },
        "bungee": {
            "broad": ["bungee", "bungee jump", "bungee jumping", "bridge jump", "swing jump"],
            "strict": ["bungee jump", "bridge swing"],
            "aliases": [],
        },
        "helicopter": {
            "broad": ["helicopter", "heli", "scenic flight"],
            "strict": ["scenic flight"],
            "aliases": [],
        },
    },
    "motorsport": {
        "kart": {
            "broad": ["kart", "karting", "go-kart", "go kart", "gokart"],
            "strict": ["go-kart", "racing"],
            "aliases": ["go-kart", "go kart", "gokart"],
        },
        "rac": {
            "broad": ["racing", "race track", "track day", "supercar", "rally", "drift", "driving experience"],
            "strict": ["track day", "supercar", "rally"],
            "aliases": ["race track", "track day", "supercar", "rally", "drift", "motorsport"],
        },
        "motocross": {
            "broad": ["motocross", "dirt bike", "enduro", "motorbike"],
            "strict": ["dirt bike", "enduro"],
            "aliases": ["dirt bike", "enduro", "motorcycl", "motorbike"],
        },
    },
    "winter": {
        "ski": {
            "broad": ["ski", "skiing", "ski lesson", "slope", "piste", "off-piste"],
            "strict": ["ski lesson", "snowboard"],
            "aliases": [],
        },
        "snowboard": {
            "broad": ["snowboard", "snowboarding", "freestyle", "snow park"],
            "strict": ["ski", "snow park"],
            "aliases": [],
        },
        "snowshoe": {
            "broad": ["snowshoe", "snowshoeing", "winter hike"],
            "strict": ["winter hike"],
            "aliases": [],
        },
        "dog sled": {
            "broad": ["dog sled", "dog sledding", "husky", "mushing"],
            "strict": ["husky", "sled"],
            "aliases": ["husky", "mush"],
        },
        "snowmobile": {
            "broad": ["snowmobile", "snowmobiling", "skidoo"],
            "strict": ["skidoo"],
            "aliases": ["skidoo"],
        },
        "ice climb": {
            "broad": ["ice climbing", "glacier hike", "glacier"],
            "strict": ["glacier hike"],
            "aliases": ["glacier"],
        },
    },
    "wildlife": {
        "dolphin": {
            "broad": ["dolphin", "dolphins", "dolphin watching", "marine life", "boat trip"],
            "strict": ["whale watching", "marine life"],
            "aliases": [],
        },
        "whale": {
            "broad": ["whale", "whale watching", "whales", "marine life"],
            "strict": ["dolphin", "marine life"],
            "aliases": [],
        },
        "safari": {
            "broad": ["safari", "game drive", "wildlife", "jeep safari"],
            "strict": ["game drive", "wildlife"],
            "aliases": ["game drive", "wildlife"],
        },
        "bird": {
            "broad": ["bird", "birdwatching", "bird watching", "birding"],
            "strict": ["birdwatching"],
            "aliases": ["birdwatch"],
        },
    },
    "culture": {
        "cook": {
            "broad": ["cooking", "cooking class", "cook", "chef", "culinary", "food"],
            "strict": ["cooking class", "culinary"],
            "aliases": ["culinary", "chef"],
        },
        "wine": {
            "broad": ["wine", "wine tasting", "vineyard", "winery", "port wine"],
            "strict": ["wine tasting", "vineyard"],
            "aliases": ["vineyard", "winery"],
        },
        "pottery": {
            "broad": ["pottery", "ceramic", "ceramics", "tiles", "azulejo", "workshop"],
            "strict": ["ceramic", "azulejo"],
            "aliases": ["ceramic", "azulejo", "tile"],
        },
        "danc": {
            "broad": ["dance", "dancing", "dance class", "salsa", "flamenco", "tango"],
            "strict": ["dance class", "salsa"],
            "aliases": ["dance", "salsa", "flamenco", "tango"],
        },
    },
}


@dataclass(frozen=True)
class TaxonomyEntry:
    """One canonical activity from the taxonomy table"""
    key: str
    domain: str
    broad: Tuple[str, ...]
    strict: Tuple[str, ...]


@dataclass(frozen=True)
class Expansion:
    """Taxonomy output for one normalized base"""
    base: str
    entry: Optional[TaxonomyEntry]
    synonyms: Tuple[str, ...]
    related: Tuple[str, ...]

    @property
    def matched(self) -> bool:
        return self.entry is not None

    @property
    def domain(self) -> Optional[str]:
        return self.entry.domain if self.entry else None


class ActivityTaxonomy:
    """
    Lookup over the taxonomy table.

    Lookup keys (canonical key + aliases) are normalized once at load time and
    matched against a normalized base by substring containment, longest key
    first, so "skydiv" wins over "div" for "indoor skydiving". Short keys only
    match whole tokens.

    Usage:
        taxonomy = ActivityTaxonomy()
        expansion = taxonomy.expand("surf")
        expansion.synonyms  # ("surf", "surfing", "surf lesson", ...)
    """

    MIN_REVERSE_MATCH = 4

    def __init__(self, table: Optional[Dict[str, Dict[str, Dict[str, List[str]]]]] = None):
        table = table if table is not None else ACTIVITY_TAXONOMY
        self._entries: Dict[str, TaxonomyEntry] = {}
        self._lookup: List[Tuple[str, TaxonomyEntry]] = []

        for domain, activities in table.items():
            for key, row in activities.items():
                entry = TaxonomyEntry(
                    key=key,
                    domain=domain,
                    broad=tuple(dict.fromkeys(term.lower() for term in row.get("broad", []))),
                    strict=tuple(dict.fromkeys(term.lower() for term in row.get("strict", []))),
                )
                self._entries[key] = entry
                for lookup_key in [key, *row.get("aliases", [])]:
                    normalized = normalize_activity(lookup_key)
                    if normalized:
                        self._lookup.append((normalized, entry))

        self._lookup.sort(key=lambda item: len(item[0]), reverse=True)
        logger.debug(f"ActivityTaxonomy loaded: {len(self._entries)} activities, {len(self._lookup)} lookup keys")

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, base: str) -> Optional[TaxonomyEntry]:
        """Find the taxonomy entry for a normalized base, if any"""
        if not base:
            return None

        # Whole-token containment first so "bik" never fires inside "bikini"
        padded = f" {base} "
        for lookup_key, entry in self._lookup:
            if f" {lookup_key} " in padded:
                return entry

        for lookup_key, entry in self._lookup:
            if len(lookup_key) >= self.MIN_REVERSE_MATCH and lookup_key in base:
                return entry

        if len(base) >= self.MIN_REVERSE_MATCH:
            for lookup_key, entry in self._lookup:
                if base in lookup_key:
                    return entry

        return None

    def expand(self, base: str) -> Expansion:
        """
        Expand a normalized base into synonym and related terms.

        Returns:
            Expansion: synonyms fall back to (base,) and related to () when no
            taxonomy key matches; an empty base yields empty tuples.
        """
        entry = self.lookup(base)
        if entry is None:
            fallback = (base,) if base else ()
            return Expansion(base=base, entry=None, synonyms=fallback, related=())

        return Expansion(base=base, entry=entry, synonyms=entry.broad, related=entry.strict)

    def domain_of(self, base: str) -> Optional[str]:
        entry = self.lookup(base)
        return entry.domain if entry else None


# Global taxonomy instance
taxonomy = ActivityTaxonomy()
