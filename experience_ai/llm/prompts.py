"""
Langchain Prompt Templates
Defines prompts for relevance filtering, boring-activity checks and content analysis
"""

from langchain_core.prompts import PromptTemplate

# ============================================
# Relevance Filter Prompt
# ============================================

RELEVANCE_PROMPT = PromptTemplate(
    input_variables=["activity", "numbered_titles"],
    template="""You are an experience matching assistant for a travel app. A user wants to do this activity:

Activity: {activity}

Here are candidate experiences, one per line, each prefixed with its index:
{numbered_titles}

TASK: Return the indices of the experiences that are genuinely the same activity or a close variant of it.

RULES:
1. Close variants count (e.g. "snorkeling" is relevant to "scuba diving", "bodyboarding" to "surfing")
2. Different domains never count: land activities are never relevant to water activities and vice versa
3. Simulators, indoor imitations and unrelated sightseeing are NOT relevant
4. If nothing matches, return an empty array []

Return ONLY a JSON array of integers, no explanation. Example: [0, 3, 5]

JSON Response:"""
)

# ============================================
# Boring Activity Prompt
# ============================================

BORING_ACTIVITY_PROMPT = PromptTemplate(
    input_variables=["activity"],
    template="""You decide whether something a traveler did is a bookable experience or everyday logistics.

Activity: {activity}

Logistics (transfers, commuting, queueing, eating a regular meal, checking in, shopping for basics) is BORING.
Anything a traveler would seek out and book (sports, tours with a real activity, wildlife, workshops) is NOT boring.

Answer with exactly one word: boring or experience."""
)

# ============================================
# Content Analysis Prompt
# ============================================

CONTENT_ANALYSIS_PROMPT = PromptTemplate(
    input_variables=["caption"],
    template="""Analyze this social media post (thumbnail image plus caption) and determine:

1. Is this an ACTIVITY (person doing something: surfing, yoga, climbing, diving, etc.)?
2. OR is this a LANDSCAPE (beautiful place: waterfall, desert, canyon, nature, etc.)?

If ACTIVITY:
- Return the activity name (e.g., "surfing", "yoga", "rock climbing")
- Return the location too if it is identifiable

If LANDSCAPE:
- Return the location/place name (e.g., "Namibia Desert", "Iguazu Falls")
- Include country if identifiable

Caption: {caption}

Respond in JSON format ONLY:
{{
  "type": "activity" or "landscape",
  "activity": "activity name" or null,
  "location": "location name" or null,
  "confidence": 0.0-1.0
}}"""
)
