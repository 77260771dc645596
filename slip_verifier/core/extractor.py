"""
Amount Extractor Module
-----------------------
Finds monetary amounts in raw OCR text.

  - Pattern extraction: an ordered, weighted list of regexes (labelled
    fields, currency-marked numbers, bare decimals, bare integers) yields
    amount candidates with their surrounding text.
  - Fallback estimation: when no pattern candidate survives, the most
    frequent plausible number across all passes is used.
"""

import re
from collections import Counter
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from slip_verifier.core.errors import AmountNotFoundError
from slip_verifier.utils.logger import get_logger

logger = get_logger(__name__)

# Plausible payment range; anything above is a reference number, date or phone
MAX_PLAUSIBLE_AMOUNT = Decimal("20000")

# Fallback accepts a narrower band
FALLBACK_MIN_AMOUNT = Decimal("100")
FALLBACK_MAX_AMOUNT = Decimal("10000")

CONTEXT_CHARS = 20

CURRENCY_MARKERS = ("M", "$", "R")

# ── Building blocks ──────────────────────────────────────────────────
# 1,234.56 / 1,234 first, then 1234.56 / 1234
_NUMBER = r'(\d{1,3}(?:,\d{3})+(?:\.\d{2})?|\d+(?:\.\d{2})?)'
_DECIMAL = r'(\d{1,3}(?:,\d{3})+\.\d{2}|\d+\.\d{2})'
_MARKER = r'[M$R]'
_LABEL_SEP = r'\s*[:\-=\s]+\s*'


def _label(word):
    return rf'(?i:{word}){_LABEL_SEP}{_MARKER}?\s*{_NUMBER}'


@dataclass(frozen=True)
class AmountPattern:
    name: str
    regex: "re.Pattern"
    weight: float


# Highest priority first. Candidates keep this discovery order for tie-breaks.
AMOUNT_PATTERNS = (
    AmountPattern('amount_label', re.compile(_label('amount')), 1.0),
    AmountPattern('total_label', re.compile(_label('total')), 1.0),
    AmountPattern('paid_label', re.compile(_label('paid')), 0.9),
    AmountPattern('balance_label', re.compile(_label('balance')), 0.8),
    AmountPattern('currency_prefix', re.compile(rf'{_MARKER}\s*{_NUMBER}'), 0.95),
    AmountPattern('currency_suffix', re.compile(rf'{_NUMBER}\s*{_MARKER}'), 0.95),
    AmountPattern('decimal_amount', re.compile(_DECIMAL), 0.7),
    AmountPattern('whole_amount', re.compile(r'(\d{3,})'), 0.5),
)

_FALLBACK_TOKEN = re.compile(r'\d{3,6}(?:\.\d{2})?')


@dataclass(frozen=True)
class AmountCandidate:
    """A single amount found by one pattern, before scoring."""

    amount: Decimal
    pattern_weight: float
    pattern_name: str
    context_window: str
    matched_substring: str
    source_pass: Optional[str] = None


def parse_amount(raw):
    """
    Parse an OCR number string into a Decimal.

    Thousands separators are stripped. Returns None if the string is not a
    finite number.
    """
    cleaned = raw.replace(',', '').strip()
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def is_plausible_amount(amount):
    """True when 0 < amount <= 20000."""
    return amount is not None and Decimal(0) < amount <= MAX_PLAUSIBLE_AMOUNT


def extract_candidates(text, source_pass=None, patterns=AMOUNT_PATTERNS):
    """
    Scan text with every amount pattern.

    Args:
        text (str): Raw OCR text from one pass.
        source_pass (str): Name of the pass that produced the text.
        patterns (tuple[AmountPattern]): Ordered patterns.

    Returns:
        list[AmountCandidate]: All plausible matches, in pattern order then
        text order. Duplicates are kept.
    """
    candidates = []
    if not text:
        return candidates

    for pattern in patterns:
        for match in pattern.regex.finditer(text):
            amount = parse_amount(match.group(1))
            if not is_plausible_amount(amount):
                continue

            start = max(0, match.start() - CONTEXT_CHARS)
            end = min(len(text), match.end() + CONTEXT_CHARS)
            candidates.append(AmountCandidate(
                amount=amount,
                pattern_weight=pattern.weight,
                pattern_name=pattern.name,
                context_window=text[start:end],
                matched_substring=match.group(0),
                source_pass=source_pass,
            ))
            logger.debug(
                "Found amount %s with %s (context %r)",
                amount, pattern.name, text[start:end],
            )

    return candidates


def extract_from_results(results, min_confidence=30):
    """
    Pool candidates from every pass whose confidence is above the floor.

    Args:
        results (list[RecognitionResult]): OCR results in pass order.
        min_confidence (float): Passes at or below this give no candidates.

    Returns:
        list[AmountCandidate]: Pooled candidates in discovery order.
    """
    pooled = []
    for result in results:
        if not result.usable(min_confidence):
            logger.debug(
                "Skipping pass %s (confidence %.1f)", result.config_name, result.confidence
            )
            continue
        pooled.extend(extract_candidates(result.raw_text, source_pass=result.config_name))

    logger.info("Extracted %d amount candidate(s)", len(pooled))
    return pooled


def estimate_fallback_amount(results):
    """
    Most frequent plausible number across all passes.

    Every pass is scanned, whatever its confidence. Tokens are 3-6 digits
    with an optional 2-digit fraction, kept only within [100, 10000].

    Args:
        results (list[RecognitionResult]): OCR results in pass order.

    Returns:
        Decimal: The most frequent value; ties go to the first seen.

    Raises:
        AmountNotFoundError: If no token qualifies.
    """
    counts = Counter()
    for result in results:
        for token in _FALLBACK_TOKEN.findall(result.raw_text or ''):
            value = parse_amount(token)
            if value is not None and FALLBACK_MIN_AMOUNT <= value <= FALLBACK_MAX_AMOUNT:
                counts[value] += 1

    if not counts:
        raise AmountNotFoundError(
            "Could not extract an amount from the slip. Please upload a clearer document."
        )

    # most_common() keeps first-encountered order among equal counts
    value, frequency = counts.most_common(1)[0]
    logger.info("Fallback amount %s (seen %d time(s))", value, frequency)
    return value
