"""
Errors Module
-------------
Exception taxonomy for slip verification.

  - ImageDecodeError: unreadable or unsupported input (fatal, no retry)
  - RecognitionPassError: one OCR pass failed (recovered inside the recognizer)
  - AmountNotFoundError: no plausible amount found by any method (fatal)

A tolerance mismatch is not an error; it is a negative VerificationOutcome.
"""


class SlipVerificationError(Exception):
    """Base class for all slip verification failures."""


class ImageDecodeError(SlipVerificationError):
    """The document could not be read or decoded into an image."""


class UnsupportedDocumentError(ImageDecodeError):
    """The document is not a PDF, JPEG or PNG."""


class DocumentTooLargeError(ImageDecodeError):
    """The document exceeds the accepted size bound."""

    def __init__(self, size, limit):
        self.size = size
        self.limit = limit
        super().__init__(
            f"Document is {size} bytes; the limit is {limit} bytes"
        )


class RecognitionPassError(SlipVerificationError):
    """A single OCR pass failed or timed out."""

    def __init__(self, pass_name, message):
        self.pass_name = pass_name
        super().__init__(f"OCR pass '{pass_name}' failed: {message}")


class AmountNotFoundError(SlipVerificationError):
    """
    No amount could be extracted from the slip.

    Callers must treat this as "could not verify" and ask for a clearer
    document. It never means the amount is zero.
    """
