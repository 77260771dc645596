"""
Slip Verifier Module
--------------------
Main verification engine.
Coordinates decode → normalize → multi-pass OCR → amount extraction →
tolerance decision, and issues a verification code when the slip matches.
"""

import os
import secrets
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from slip_verifier.config import VerifierConfig
from slip_verifier.core.errors import SlipVerificationError
from slip_verifier.core.extractor import estimate_fallback_amount, extract_from_results
from slip_verifier.core.image_loader import decode_document, read_document
from slip_verifier.core.ocr_engine import OCREngine
from slip_verifier.core.scorer import select_best
from slip_verifier.utils.image_preprocessing import normalize_image
from slip_verifier.utils.logger import get_logger
from slip_verifier.utils.validators import parse_required_amount

logger = get_logger(__name__)

CURRENCY_SYMBOL = "M"

METHOD_PATTERN = "pattern"
METHOD_FALLBACK = "fallback"

_CENTS = Decimal("0.01")
_TENTHS = Decimal("0.1")


@dataclass(frozen=True)
class VerificationOutcome:
    """
    Result of one verification attempt.

    `verification_code` is set if and only if `verified` is True.
    Differences are rounded for display (cents / tenths of a percent);
    the decision itself uses the unrounded difference.
    """

    verified: bool
    extracted_amount: Decimal
    required_amount: Decimal
    absolute_difference: Decimal
    percentage_difference: Decimal
    tolerance: Decimal
    verification_code: Optional[str]
    message: str
    extraction_method: str = METHOD_PATTERN
    selected_pattern: Optional[str] = None

    def __post_init__(self):
        if self.verified != (self.verification_code is not None):
            raise ValueError("verification_code must be present exactly when verified")

    def to_dict(self):
        """JSON-friendly representation (Decimals as strings)."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = str(value)
        return data


@dataclass(frozen=True)
class ExtractedAmount:
    amount: Decimal
    method: str
    pattern_name: Optional[str] = None
    score: Optional[Decimal] = None


def generate_verification_code():
    """Uniformly random 6-digit code, 100000..999999."""
    return str(100000 + secrets.randbelow(900000))


def compute_tolerance(required_amount, rate=Decimal("0.05"), cap=Decimal("10")):
    """
    Maximum accepted difference: a percentage of the required amount,
    never more than the absolute cap.
    """
    return min(Decimal(required_amount) * Decimal(str(rate)), Decimal(str(cap)))


def decide(extracted_amount, required_amount, rate=Decimal("0.05"), cap=Decimal("10"),
           code_generator=generate_verification_code,
           extraction_method=METHOD_PATTERN, selected_pattern=None):
    """
    Compare an extracted amount with the amount owed.

    Args:
        extracted_amount (Decimal): Amount read from the slip.
        required_amount (Decimal): Amount owed; must be positive.
        rate (Decimal): Proportional tolerance.
        cap (Decimal): Absolute tolerance ceiling.
        code_generator (callable): Produces the verification code on success.
        extraction_method (str): 'pattern' or 'fallback', for reporting.
        selected_pattern (str): Name of the winning pattern, if any.

    Returns:
        VerificationOutcome
    """
    extracted = Decimal(extracted_amount)
    required = parse_required_amount(required_amount)

    difference = abs(extracted - required)
    percentage = difference / required * 100
    tolerance = compute_tolerance(required, rate, cap)
    verified = difference <= tolerance

    shown_diff = difference.quantize(_CENTS, rounding=ROUND_HALF_UP)
    shown_pct = percentage.quantize(_TENTHS, rounding=ROUND_HALF_UP)

    if verified:
        code = code_generator()
        message = (
            f"Payment verified! Detected {CURRENCY_SYMBOL}{extracted} which matches "
            f"the required {CURRENCY_SYMBOL}{required} ({shown_pct}% difference)."
        )
    else:
        code = None
        message = (
            f"Amount mismatch! Detected {CURRENCY_SYMBOL}{extracted} but the required "
            f"amount is {CURRENCY_SYMBOL}{required} ({shown_pct}% difference). "
            f"Please upload a valid payment slip."
        )

    logger.info(
        "Difference %s%s (%s%%), tolerance %s%s, match: %s",
        CURRENCY_SYMBOL, shown_diff, shown_pct, CURRENCY_SYMBOL,
        tolerance.quantize(_CENTS, rounding=ROUND_HALF_UP), verified,
    )

    return VerificationOutcome(
        verified=verified,
        extracted_amount=extracted,
        required_amount=required,
        absolute_difference=shown_diff,
        percentage_difference=shown_pct,
        tolerance=tolerance,
        verification_code=code,
        message=message,
        extraction_method=extraction_method,
        selected_pattern=selected_pattern,
    )


def select_amount(results, min_confidence=30):
    """
    Choose the slip amount from OCR results.

    Pattern candidates from confident passes are scored first; if there
    are none, the fallback estimator scans all passes.

    Raises:
        AmountNotFoundError: If neither method finds an amount.
    """
    best = select_best(extract_from_results(results, min_confidence))
    if best is not None:
        return ExtractedAmount(
            amount=best.amount,
            method=METHOD_PATTERN,
            pattern_name=best.pattern_name,
            score=best.final_score,
        )

    logger.info("No pattern candidates; trying fallback extraction")
    return ExtractedAmount(amount=estimate_fallback_amount(results), method=METHOD_FALLBACK)


class SlipVerifier:
    """
    Payment slip verification engine.
    One shot per document: no retries, no state kept between calls.
    """

    def __init__(self, config=None, ocr=None, code_generator=generate_verification_code):
        self.config = config or VerifierConfig()
        self.ocr = ocr or OCREngine(
            language=self.config.language,
            timeout_s=self.config.pass_timeout_s,
            max_workers=self.config.max_workers,
            tesseract_cmd=self.config.tesseract_cmd,
        )
        self.code_generator = code_generator

    def recognize(self, document):
        """
        Decode, normalize and OCR a document.

        Returns:
            list[RecognitionResult]: One result per pass.

        Raises:
            ImageDecodeError: If the document is oversized, unsupported or unreadable.
        """
        cfg = self.config
        with decode_document(document, cfg.max_document_bytes, cfg.pdf_dpi) as image:
            normalized = normalize_image(image, cfg.max_dimension, cfg.binarize_threshold)
        try:
            return self.ocr.run_all_passes(normalized)
        finally:
            # Tracebacks keep frame locals alive; release the buffer explicitly
            del normalized

    def verify(self, document, required_amount):
        """
        Verify a payment slip against the amount owed.

        Args:
            document (bytes): PDF, JPEG or PNG bytes (at most 10 MiB by default).
            required_amount (Decimal | str | float): Amount owed.

        Returns:
            VerificationOutcome

        Raises:
            ValueError: If required_amount is not a positive number.
            ImageDecodeError: If the document cannot be read.
            AmountNotFoundError: If no amount could be extracted.
        """
        required = parse_required_amount(required_amount)
        logger.info("Verifying slip (%d bytes) against %s%s", len(document), CURRENCY_SYMBOL, required)

        results = self.recognize(document)
        extracted = select_amount(results, self.config.min_pass_confidence)

        outcome = decide(
            extracted.amount,
            required,
            rate=self.config.tolerance_rate,
            cap=self.config.tolerance_cap,
            code_generator=self.code_generator,
            extraction_method=extracted.method,
            selected_pattern=extracted.pattern_name,
        )
        logger.info("Verification result: %s", outcome.message)
        return outcome

    def verify_file(self, path, required_amount):
        """Read a slip from disk and verify it."""
        return self.verify(read_document(path), required_amount)

    def verify_batch(self, paths, required_amount, progress_callback=None):
        """
        Verify several slips against the same required amount.

        Includes:
          - Error recovery: a failed slip is recorded and the batch continues
          - Processing summary: counts of verified/mismatched/failed

        Args:
            paths (list[str]): Slip files.
            required_amount: Amount owed for each slip.
            progress_callback (callable): fn(current, total, message) for progress.

        Returns:
            tuple: (list[dict], dict): report rows and summary stats.
                   Summary keys: 'verified', 'mismatched', 'failed', 'errors'
        """
        required = parse_required_amount(required_amount)
        rows = []
        total = len(paths)
        summary = {
            'verified': 0,
            'mismatched': 0,
            'failed': 0,
            'errors': [],  # list of (filename, error_message)
        }

        for i, path in enumerate(paths):
            filename = os.path.basename(path)
            if progress_callback:
                progress_callback(i + 1, total, f"Processing {filename}...")

            try:
                outcome = self.verify_file(path, required)
            except SlipVerificationError as e:
                summary['failed'] += 1
                summary['errors'].append((filename, str(e)))
                logger.error("Could not verify %s: %s", filename, e)
                rows.append({
                    'File Name': filename,
                    'Status': 'FAILED',
                    'Required Amount': str(required),
                    'Error': str(e),
                })
                continue

            summary['verified' if outcome.verified else 'mismatched'] += 1
            rows.append(outcome_to_row(filename, outcome))

        return rows, summary


def outcome_to_row(filename, outcome):
    """Flatten an outcome into a report row."""
    return {
        'File Name': filename,
        'Status': 'VERIFIED' if outcome.verified else 'MISMATCH',
        'Extracted Amount': str(outcome.extracted_amount),
        'Required Amount': str(outcome.required_amount),
        'Difference': str(outcome.absolute_difference),
        'Difference (%)': str(outcome.percentage_difference),
        'Verification Code': outcome.verification_code or '',
        'Method': outcome.extraction_method,
        'Pattern': outcome.selected_pattern or '',
        'Message': outcome.message,
    }


def verify(document, required_amount, config=None):
    """Convenience wrapper: verify one document with a fresh SlipVerifier."""
    return SlipVerifier(config=config).verify(document, required_amount)
