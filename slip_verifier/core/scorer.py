"""
Candidate Scorer Module
-----------------------
Re-weights amount candidates with contextual hints and picks the best one.

Scoring starts from the pattern weight, then:
  +0.20  context mentions "amount", "total" or "paid"
  +0.15  context or match carries a currency marker (M, $, R)
  -0.10  amount is an exact multiple of 1000 (OCR dropping trailing digits)
"""

from dataclasses import dataclass
from decimal import Decimal

from slip_verifier.core.extractor import AmountCandidate, CURRENCY_MARKERS
from slip_verifier.utils.logger import get_logger

logger = get_logger(__name__)

KEYWORDS = ('amount', 'total', 'paid')

KEYWORD_BONUS = Decimal("0.2")
CURRENCY_BONUS = Decimal("0.15")
ROUND_PENALTY = Decimal("0.1")


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: AmountCandidate
    final_score: Decimal

    @property
    def amount(self):
        return self.candidate.amount

    @property
    def pattern_name(self):
        return self.candidate.pattern_name


def _has_keyword(context):
    lowered = context.lower()
    return any(word in lowered for word in KEYWORDS)


def _has_currency_marker(*texts):
    return any(marker in text for text in texts for marker in CURRENCY_MARKERS)


def score_candidate(candidate):
    """Compute the final score for one candidate. Scores are Decimal so ties are exact."""
    score = Decimal(str(candidate.pattern_weight))

    if _has_keyword(candidate.context_window):
        score += KEYWORD_BONUS

    if _has_currency_marker(candidate.context_window, candidate.matched_substring):
        score += CURRENCY_BONUS

    if candidate.amount % 1000 == 0:
        score -= ROUND_PENALTY

    return ScoredCandidate(candidate=candidate, final_score=score)


def rank_candidates(candidates):
    """
    Score and sort candidates, best first.

    The sort is stable, so equal scores keep discovery order (first
    pattern checked wins).
    """
    scored = [score_candidate(c) for c in candidates]
    return sorted(scored, key=lambda s: s.final_score, reverse=True)


def select_best(candidates):
    """
    Pick the highest-scoring candidate.

    Returns:
        ScoredCandidate or None: None when there are no candidates.
    """
    if not candidates:
        return None

    ranked = rank_candidates(candidates)
    best = ranked[0]
    logger.info(
        "Selected amount %s via %s (score %s, %d candidate(s))",
        best.amount, best.pattern_name, best.final_score, len(ranked),
    )
    return best
