"""
OCR Engine Module
-----------------
Runs the normalized slip image through several Tesseract passes.
Each pass uses its own segmentation mode, character whitelist and engine
mode. Passes run concurrently and fail independently: a pass that errors
or times out is recorded with zero confidence instead of aborting the rest.
"""

import os
import shutil
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum
from typing import Optional

import pytesseract
from pytesseract import Output

from slip_verifier.core.errors import RecognitionPassError
from slip_verifier.utils.logger import get_logger

logger = get_logger(__name__)


class SegmentationMode(IntEnum):
    """Tesseract page segmentation modes (--psm) used by the passes."""

    SINGLE_BLOCK = 6   # assume a single uniform block of text
    SINGLE_LINE = 7    # assume a single text line
    SINGLE_WORD = 8    # assume a single word
    SPARSE_TEXT = 11   # sparse text, no particular order


class EngineMode(IntEnum):
    """Tesseract OCR engine modes (--oem)."""

    LEGACY_ONLY = 0
    NEURAL_ONLY = 1
    LEGACY_AND_NEURAL = 2
    DEFAULT = 3        # full pipeline, whatever is available


AMOUNT_CHARS = "0123456789.,M$R "
DIGIT_CHARS = "0123456789., "


@dataclass(frozen=True)
class RecognitionPassConfig:
    name: str
    allowed_chars: str
    segmentation_mode: SegmentationMode
    engine_mode: EngineMode

    def tesseract_config(self):
        """
        Build the Tesseract flag string for this pass.

        Whitespace is left out of the whitelist: Tesseract separates words
        regardless, and a literal space would split the -c argument.
        """
        whitelist = "".join(ch for ch in self.allowed_chars if not ch.isspace())
        return (
            f"--psm {int(self.segmentation_mode)} "
            f"--oem {int(self.engine_mode)} "
            f"-c tessedit_char_whitelist={whitelist}"
        )


PASS_CONFIGS = (
    RecognitionPassConfig(
        name="high_accuracy",
        allowed_chars=AMOUNT_CHARS,
        segmentation_mode=SegmentationMode.SINGLE_BLOCK,
        engine_mode=EngineMode.DEFAULT,
    ),
    RecognitionPassConfig(
        name="numbers_only",
        allowed_chars=DIGIT_CHARS,
        segmentation_mode=SegmentationMode.SINGLE_WORD,
        engine_mode=EngineMode.LEGACY_ONLY,
    ),
    RecognitionPassConfig(
        name="sparse_text",
        allowed_chars=AMOUNT_CHARS,
        segmentation_mode=SegmentationMode.SPARSE_TEXT,
        engine_mode=EngineMode.LEGACY_AND_NEURAL,
    ),
    RecognitionPassConfig(
        name="single_line",
        allowed_chars=AMOUNT_CHARS,
        segmentation_mode=SegmentationMode.SINGLE_LINE,
        engine_mode=EngineMode.DEFAULT,
    ),
)


@dataclass(frozen=True)
class RecognitionResult:
    """Output of one OCR pass. `confidence` is Tesseract's 0..100 scale."""

    config_name: str
    raw_text: str
    confidence: float
    timestamp: str
    error: Optional[str] = None

    @property
    def failed(self):
        return self.error is not None

    def usable(self, min_confidence=30):
        """True when the pass produced text with confidence strictly above the floor."""
        return bool(self.raw_text) and self.confidence > min_confidence


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


def _data_to_text_and_confidence(data):
    """
    Rebuild line-ordered text and mean word confidence from image_to_data output.

    Args:
        data (dict): pytesseract Output.DICT result.

    Returns:
        tuple: (text: str, confidence: float)
    """
    lines = {}
    line_order = []
    confidences = []

    texts = data.get("text", [])
    for i, word in enumerate(texts):
        word = (word or "").strip()
        if not word:
            continue

        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        if key not in lines:
            lines[key] = []
            line_order.append(key)
        lines[key].append(word)

        try:
            conf = float(data["conf"][i])
        except (TypeError, ValueError):
            continue
        if conf >= 0:
            confidences.append(conf)

    text = "\n".join(" ".join(lines[key]) for key in line_order)
    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    return text, confidence


class OCREngine:
    """
    Wrapper around Tesseract OCR.
    Auto-detects the Tesseract binary and runs the configured passes.
    """

    def __init__(self, language="eng", timeout_s=30.0, max_workers=4,
                 tesseract_cmd=None, passes=PASS_CONFIGS):
        self.language = language
        self.timeout_s = timeout_s
        self.max_workers = max_workers
        self.passes = tuple(passes)
        self._configure_tesseract(tesseract_cmd)

    def _configure_tesseract(self, tesseract_cmd=None):
        """
        Point pytesseract at a Tesseract binary.

        An explicit path wins. Otherwise, if `tesseract` is on PATH nothing
        is changed; failing that, common Windows install locations are tried.
        """
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
            return

        if shutil.which("tesseract"):
            return

        common_paths = [
            r"C:\Program Files\Tesseract-OCR\tesseract.exe",
            r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
        ]

        local_app = os.getenv('LOCALAPPDATA')
        if local_app:
            common_paths.append(
                os.path.join(local_app, r"Tesseract-OCR\tesseract.exe")
            )

        for path in common_paths:
            if os.path.exists(path):
                pytesseract.pytesseract.tesseract_cmd = path
                return

        logger.warning("Tesseract binary not found on PATH or in common locations")

    def run_pass(self, image, pass_config):
        """
        Run a single OCR pass.

        Args:
            image (numpy.ndarray): Normalized single-channel image.
            pass_config (RecognitionPassConfig): Pass settings.

        Returns:
            RecognitionResult

        Raises:
            RecognitionPassError: If Tesseract fails or exceeds the timeout.
        """
        try:
            data = pytesseract.image_to_data(
                image,
                lang=self.language,
                config=pass_config.tesseract_config(),
                output_type=Output.DICT,
                timeout=self.timeout_s,
            )
        except Exception as e:
            raise RecognitionPassError(pass_config.name, str(e) or type(e).__name__) from e

        text, confidence = _data_to_text_and_confidence(data)
        logger.debug(
            "OCR %s: confidence=%.1f text=%r", pass_config.name, confidence, text[:100]
        )
        return RecognitionResult(
            config_name=pass_config.name,
            raw_text=text.strip(),
            confidence=confidence,
            timestamp=_now_iso(),
        )

    def _run_isolated(self, image, pass_config):
        try:
            return self.run_pass(image, pass_config)
        except RecognitionPassError as e:
            logger.warning("%s", e)
            return RecognitionResult(
                config_name=pass_config.name,
                raw_text="",
                confidence=0.0,
                timestamp=_now_iso(),
                error=str(e),
            )

    def run_all_passes(self, image):
        """
        Run every configured pass over the same image.

        All passes finish (or fail) before this returns. If the caller is
        interrupted, passes that have not started yet are cancelled and the
        interrupt is re-raised immediately. A Tesseract process that is
        already running cannot be stopped from here: it is killed by
        pytesseract when `timeout_s` expires, so interpreter exit can wait
        up to that long for its worker thread.

        Args:
            image (numpy.ndarray): Normalized single-channel image (read-only).

        Returns:
            list[RecognitionResult]: One result per pass, in pass order.
        """
        results = [None] * len(self.passes)
        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self.max_workers, len(self.passes))),
            thread_name_prefix="ocr-pass",
        )
        try:
            futures = {
                executor.submit(self._run_isolated, image, pass_config): idx
                for idx, pass_config in enumerate(self.passes)
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        except BaseException:
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)

        failed = sum(1 for r in results if r.failed)
        logger.info("OCR finished: %d pass(es), %d failed", len(results), failed)
        return results
