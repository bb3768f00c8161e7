# experience_ai/__init__.py
"""
Experience Matching Service Package

Turns an activity into a short list of bookable experiences:
- Typed activities ("surfing" near me)
- Activities and places detected in shared reels
- Internal curated catalog mixed with an external inventory provider

Modes Supported:
1. Near you - the user's own city, internal + external
2. As seen on reel - the reel's place, external only
"""

__version__ = "1.0.0"

# Package structure:
# experience_ai/
# ├── __init__.py           <- This file
# ├── main.py               <- FastAPI application entry
# ├── config.py             <- Configuration settings
# │
# ├── agents/               <- Orchestration
# │   ├── aggregator.py          <- Hybrid external search + merge
# │   └── experience_matcher.py  <- recommend / recommend_from_source
# │
# ├── algorithms/           <- Pure matching logic
# │   ├── normalizer.py     <- Activity label -> normalized base
# │   ├── taxonomy.py       <- Activity synonyms by domain
# │   ├── boring_gate.py    <- Boring / irrelevant short-circuit
# │   ├── content_filters.py <- Keyword/price gate, location filter
# │   ├── ranking.py        <- Catalog scoring, title-relevance order
# │   └── source_mixer.py   <- Internal/external mixing policy
# │
# ├── api/                  <- FastAPI Routers
# │   └── recommendations.py <- /api/ai/experiences
# │
# ├── cache/                <- Query cache + durable analysis cache
# ├── interfaces/           <- Catalog store, Viator client, geocoder
# ├── llm/                  <- Prompts, relevance oracle, analyzers
# ├── schemas/              <- Pydantic Models
# └── data/                 <- Internal catalog seed
