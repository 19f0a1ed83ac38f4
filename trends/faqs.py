"""
Comparison FAQs.

Every answer is derived from computed metrics, so two requests for the same
comparison produce the same FAQs.
"""

from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from trends.mathutils import to_number
from trends.metrics import Driver
from trends.series import SeriesPoint

MAX_FAQS = 4


class ComparisonFAQ(BaseModel):
    id: str
    question: str
    answer: str


class RegionShare(BaseModel):
    country: str
    term_a_value: float = 0
    term_b_value: float = 0


class GeoDominance(BaseModel):
    term_a_dominance: List[RegionShare] = Field(default_factory=list)
    term_b_dominance: List[RegionShare] = Field(default_factory=list)


class ComparisonFAQData(BaseModel):
    term_a: str
    term_b: str
    winner: str
    loser: str
    top_drivers: List[Driver] = Field(default_factory=list)
    agreement_index: Optional[float] = None
    disagreement_flag: bool = False
    stability: Optional[str] = None
    volatility: Optional[float] = None
    gap_change_points: Optional[float] = None
    series: Optional[List[Dict]] = None
    geo_data: Optional[GeoDominance] = None


def pretty_term(term: str) -> str:
    """``"iphone-16"`` -> ``"Iphone 16"``"""
    return " ".join(word[:1].upper() + word[1:] for word in term.replace("-", " ").split(" "))


def _count_lead_flips(series: Sequence[SeriesPoint], term_a: str, term_b: str, loser: str) -> int:
    """Times the lead moved away from the current loser."""
    flips = 0
    for prev, curr in zip(series, series[1:]):
        prev_leader = term_a if to_number(prev.get(term_a)) > to_number(prev.get(term_b)) else term_b
        curr_leader = term_a if to_number(curr.get(term_a)) > to_number(curr.get(term_b)) else term_b
        if prev_leader != curr_leader and prev_leader == loser:
            flips += 1
    return flips


def build_comparison_faqs(data: ComparisonFAQData) -> List[ComparisonFAQ]:
    faqs: List[ComparisonFAQ] = []
    winner = pretty_term(data.winner)
    loser = pretty_term(data.loser)
    term_a = pretty_term(data.term_a)
    term_b = pretty_term(data.term_b)

    if data.top_drivers:
        answer = f"{winner} leads primarily due to {data.top_drivers[0].name.lower()}."
        if len(data.top_drivers) > 1:
            answer += f" {data.top_drivers[1].name} also contributes significantly."
        if data.disagreement_flag:
            answer += " Note: Some sources disagree, indicating nuanced trends across platforms."
        elif (data.agreement_index or 0) >= 80:
            answer += " Multiple sources agree on this trend, indicating strong consensus."
        faqs.append(ComparisonFAQ(
            id="why-winner-leads",
            question=f"Why does {winner} lead {loser} in this period?",
            answer=answer,
        ))

    if data.series:
        flips = _count_lead_flips(data.series, data.term_a, data.term_b, data.loser)
        if flips:
            answer = (
                f"Yes. Historical data shows {loser} has led {winner} at least {flips} "
                f"time{'s' if flips > 1 else ''} in the past. The current trend favors {winner}, "
                "but past flips suggest this could change."
            )
        else:
            answer = (
                f"No. Throughout the available time period, {winner} has consistently maintained the lead. "
                f"This suggests a stable trend with {loser} consistently trailing."
            )
        faqs.append(ComparisonFAQ(
            id="has-loser-overtaken",
            question=f"Has {loser} ever overtaken {winner}?",
            answer=answer,
        ))

    if data.stability and data.volatility is not None:
        volatility = f"{data.volatility:.1f}"
        if data.stability == "stable":
            answer = (
                f"This trend is classified as stable. {winner} shows consistent popularity with low volatility "
                f"({volatility}%). This suggests a sustainable trend rather than a temporary spike."
            )
        elif data.stability == "hype":
            answer = (
                f"This trend shows signs of hype. High volatility ({volatility}%) and potential spikes suggest "
                "this may be a temporary surge rather than a long-term trend. Monitor closely for changes."
            )
        else:
            answer = (
                f"This trend is volatile. Fluctuations ({volatility}% volatility) indicate uncertainty. "
                "The lead could shift, so regular monitoring is recommended."
            )
        faqs.append(ComparisonFAQ(id="stable-or-hype", question="Is this trend stable or hype?", answer=answer))

    if data.geo_data:
        top_a = [r.country for r in data.geo_data.term_a_dominance[:3]]
        top_b = [r.country for r in data.geo_data.term_b_dominance[:3]]
        parts = []
        if top_a:
            parts.append(f"{term_a} leads in {', '.join(top_a)}.")
        if top_b:
            parts.append(f"{term_b} leads in {', '.join(top_b)}.")
        if parts:
            parts.append("Regional preferences reflect relative search interest from Google Trends.")
            faqs.append(ComparisonFAQ(
                id="regional-preferences",
                question=f"Which regions prefer {term_a} vs {term_b}?",
                answer=" ".join(parts),
            ))

    if data.gap_change_points is not None and abs(data.gap_change_points) > 0.5:
        change = f"{abs(data.gap_change_points):.1f}"
        if data.gap_change_points > 0:
            answer = (
                f"The gap widened by {change} points. {winner} extended its lead over {loser}, "
                "suggesting strengthening momentum."
            )
        else:
            answer = (
                f"The gap narrowed by {change} points. {loser} is closing in on {winner}, "
                "indicating a potential shift in the trend."
            )
        faqs.append(ComparisonFAQ(id="gap-change", question="Did the gap widen or narrow recently?", answer=answer))

    if data.agreement_index is not None:
        agreement = f"{data.agreement_index:.0f}"
        answer = None
        if data.disagreement_flag:
            answer = (
                f"Sources show some disagreement ({agreement}% agreement). This suggests different platforms "
                "measure different aspects of popularity. Consider the breakdown by source to understand "
                "the nuances."
            )
        elif data.agreement_index >= 80:
            answer = (
                f"Yes, sources show strong agreement ({agreement}% agreement). Multiple data sources align, "
                "indicating a consistent trend across platforms."
            )
        if answer:
            faqs.append(ComparisonFAQ(
                id="source-agreement",
                question="Do all sources agree on this comparison?",
                answer=answer,
            ))

    return faqs[:MAX_FAQS]
