"""
AI insight layer for comparisons.

Modules:
    data: prepare_insight_data, the statistics the prompt is built from
    budget: InsightBudget daily/monthly caps
    generator: prompt building, response parsing and generate_insights

The language model is not called directly; callers pass an async
``complete(prompt) -> str`` callable.
"""

__all__ = [
    "InsightData",
    "prepare_insight_data",
    "InsightBudget",
    "build_insight_prompt",
    "parse_insight_response",
    "generate_insights",
    "http_completion",
]
