"""
Configuration Module
--------------------
Tunable settings for the slip verification pipeline.

The engine never reads environment variables itself; the command-line
entry point (or any other caller) builds a VerifierConfig and passes it in.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


# 10 MiB upload bound
MAX_DOCUMENT_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class VerifierConfig:
    """
    Verification pipeline configuration.

    Image normalization:
        max_dimension: long-edge cap in pixels (images are never upscaled).
        binarize_threshold: fixed luminance threshold, 0..255.
        pdf_dpi: render resolution for the first page of PDF slips.

    OCR:
        language: Tesseract language pack.
        tesseract_cmd: explicit tesseract binary; None means auto-detect.
        pass_timeout_s: per-pass time limit; a pass that exceeds it counts as failed.
        min_pass_confidence: passes at or below this confidence give no candidates.
        max_workers: thread pool size for the recognition passes.

    Decision:
        tolerance_rate: proportional tolerance (0.05 = 5% of the required amount).
        tolerance_cap: absolute tolerance ceiling in currency units.
    """

    max_document_bytes: int = MAX_DOCUMENT_BYTES
    max_dimension: int = 2400
    binarize_threshold: int = 150
    pdf_dpi: int = 200
    language: str = "eng"
    tesseract_cmd: Optional[str] = None
    pass_timeout_s: float = 30.0
    min_pass_confidence: float = 30.0
    max_workers: int = 4
    tolerance_rate: Decimal = Decimal("0.05")
    tolerance_cap: Decimal = Decimal("10")

    def __post_init__(self):
        if self.max_document_bytes <= 0:
            raise ValueError("max_document_bytes must be positive")
        if self.max_dimension <= 0:
            raise ValueError("max_dimension must be positive")
        if not 0 <= self.binarize_threshold <= 255:
            raise ValueError("binarize_threshold must be within [0, 255]")
        if self.pdf_dpi <= 0:
            raise ValueError("pdf_dpi must be positive")
        if self.pass_timeout_s <= 0:
            raise ValueError("pass_timeout_s must be positive")
        if not 0 <= self.min_pass_confidence <= 100:
            raise ValueError("min_pass_confidence must be within [0, 100]")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        # Accept floats/strings from callers; decisions are made in Decimal.
        object.__setattr__(self, "tolerance_rate", Decimal(str(self.tolerance_rate)))
        object.__setattr__(self, "tolerance_cap", Decimal(str(self.tolerance_cap)))
        if self.tolerance_rate < 0 or self.tolerance_cap < 0:
            raise ValueError("tolerance_rate and tolerance_cap must be non-negative")
