"""
Prompt building and response parsing for AI comparison insights.

The model call itself is injected as ``complete``: an async callable that
takes the prompt text and returns the model's text reply.
"""

import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from insights.budget import InsightBudget, budget as default_budget
from insights.data import InsightData

logger = logging.getLogger(__name__)

CompleteFn = Callable[[str], Awaitable[str]]

COMPLETION_TIMEOUT = 30.0

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class PracticalImplications(BaseModel):
    for_investors: Optional[str] = Field(None, alias="forInvestors")
    for_content_creators: Optional[str] = Field(None, alias="forContentCreators")
    for_seo_experts: Optional[str] = Field(None, alias="forSEOExperts")

    class Config:
        populate_by_name = True


class InsightResult(BaseModel):
    what_data_tells_us: List[str] = Field(default_factory=list, alias="whatDataTellsUs")
    why_this_matters: str = Field("", alias="whyThisMatters")
    key_differences: str = Field("", alias="keyDifferences")
    volatility_analysis: str = Field("", alias="volatilityAnalysis")
    practical_implications: PracticalImplications = Field(
        default_factory=PracticalImplications, alias="practicalImplications"
    )
    prediction: str = ""

    class Config:
        populate_by_name = True


def _pretty(term: str) -> str:
    return term.replace("-", " ")


def _volatility_label(value: float) -> str:
    if value > 5:
        return "high"
    if value > 3:
        return "moderate"
    return "low"


def build_insight_prompt(data: InsightData) -> str:
    a, b = _pretty(data.term_a), _pretty(data.term_b)

    if data.recent_spike:
        spike = (
            f"RECENT SPIKE:\n{_pretty(data.recent_spike.term)} surged {data.recent_spike.magnitude}% "
            f"in the past week (detected on {data.recent_spike.date})"
        )
    else:
        spike = "No major spikes detected in past week"

    return f"""Analyze this specific trend comparison data and provide SPECIFIC insights based ONLY on the data provided.

COMPARISON: {a} vs {b}

CURRENT WEEK DATA:
- {a}: {data.current_week_avg_a} avg searches
- {b}: {data.current_week_avg_b} avg searches
- Current Leader: {_pretty(data.current_leader)} by {data.advantage}%

HISTORICAL PEAKS:
- {a} peaked on {data.peak_a_date} at {data.peak_a_value:g}
- {b} peaked on {data.peak_b_date} at {data.peak_b_value:g}

VOLATILITY:
- {a}: {data.volatility_a}/10 ({_volatility_label(data.volatility_a)})
- {b}: {data.volatility_b}/10 ({_volatility_label(data.volatility_b)})

{spike}

COMPETITIVE DYNAMICS:
- Leadership changes: {data.crossover_count} times
- Trend: {data.trend_direction}

Provide insights in JSON format with these exact keys:
{{
  "whatDataTellsUs": ["insight1 with exact numbers and dates", "insight2 with exact numbers and dates", "insight3 with exact numbers and dates"],
  "whyThisMatters": "brief explanation based on the data patterns",
  "keyDifferences": "specific differences between the two terms with data",
  "volatilityAnalysis": "what the volatility numbers mean practically",
  "practicalImplications": {{
    "forContentCreators": "specific timing/strategy advice based on patterns"
  }},
  "prediction": "data-driven short-term forecast"
}}

CRITICAL: Use ONLY the specific data provided. Include exact dates, numbers, and percentages. Be concise and actionable."""


def parse_insight_response(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse the model's reply into a dict.

    Tries the whole text as JSON first, then the outermost ``{...}`` block
    (replies are often wrapped in markdown fences). None when neither parses.
    """
    if not text:
        return None

    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except ValueError:
        pass

    match = _JSON_BLOCK.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        logger.warning("Insight response contained an unparsable JSON block")
        return None
    return parsed if isinstance(parsed, dict) else None


async def generate_insights(
    data: InsightData,
    complete: CompleteFn,
    budget: Optional[InsightBudget] = None,
) -> Optional[InsightResult]:
    """None when over budget, when the call fails or the reply does not parse."""
    budget = budget or default_budget
    if not budget.can_generate():
        logger.info("Skipping insight generation, budget limit reached")
        return None

    prompt = build_insight_prompt(data)
    try:
        reply = await complete(prompt)
    except Exception as e:
        logger.error(f"Insight generation failed for {data.term_a} vs {data.term_b}: {e}")
        return None

    budget.record()

    parsed = parse_insight_response(reply)
    if parsed is None:
        return None
    try:
        return InsightResult.model_validate(parsed)
    except ValidationError as e:
        logger.warning(f"Insight response did not match the expected shape: {e}")
        return None


def http_completion(url: str, api_key: Optional[str] = None, timeout: float = COMPLETION_TIMEOUT) -> CompleteFn:
    """
    ``complete`` backed by a plain text-completion HTTP endpoint.

    POSTs ``{"prompt": ...}`` and reads ``text`` (or ``completion``) from the
    JSON reply. HTTP errors propagate; generate_insights logs and drops them.
    """
    headers = {"Accept": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    async def complete(prompt: str) -> str:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, json={"prompt": prompt}, headers=headers)
            response.raise_for_status()
            data = response.json()
        return data.get("text") or data.get("completion") or ""

    return complete
