"""
Keyword validation endpoint
"""

from fastapi import APIRouter

from schemas.api import KeywordCheck, KeywordValidateRequest, KeywordValidateResponse
from trends.keywords import is_safe_for_slug, is_valid_keyword, sanitize_keyword, validate_keywords
from trends.terms import validate_term

router = APIRouter(prefix="/api/keywords", tags=["Keywords"])


@router.post("/validate", response_model=KeywordValidateResponse)
async def validate(body: KeywordValidateRequest):
    """Keyword filter plus deep term validation for each input."""
    results = []
    for keyword in body.keywords:
        sanitized = sanitize_keyword(keyword)
        term = validate_term(keyword)
        results.append(KeywordCheck(
            keyword=keyword,
            sanitized=sanitized,
            valid=is_valid_keyword(sanitized) and term.ok,
            safe_for_slug=is_safe_for_slug(sanitized),
            term=term.term,
            reason=term.reason,
        ))

    return KeywordValidateResponse(results=results, valid_keywords=validate_keywords(body.keywords))
