"""
Image Loader Module
-------------------
Turns uploaded slip bytes into a PIL image.
Checks the size bound and file signature before any decoding, renders the
first page of PDF slips, and provides folder scanning for batch runs.
"""

import io
import os

import pypdfium2 as pdfium
from PIL import Image

from slip_verifier.config import MAX_DOCUMENT_BYTES
from slip_verifier.core.errors import (
    DocumentTooLargeError,
    ImageDecodeError,
    UnsupportedDocumentError,
)

# Supported slip file extensions (folder scanning only; decoding sniffs bytes)
SUPPORTED_EXTENSIONS = ('.pdf', '.jpg', '.jpeg', '.png')

# File signatures, checked in order
_SIGNATURES = (
    (b'%PDF-', 'pdf'),
    (b'\xff\xd8\xff', 'jpeg'),
    (b'\x89PNG\r\n\x1a\n', 'png'),
)


def detect_format(data):
    """
    Identify a slip document from its leading bytes.

    Args:
        data (bytes): Raw document.

    Returns:
        str: 'pdf', 'jpeg' or 'png'.

    Raises:
        UnsupportedDocumentError: For any other signature.
    """
    head = bytes(data[:16])
    for signature, kind in _SIGNATURES:
        if head.startswith(signature):
            return kind
    raise UnsupportedDocumentError(
        "Unsupported document type. Only PDF, JPG and PNG are accepted."
    )


def check_document_size(data, max_bytes=MAX_DOCUMENT_BYTES):
    """Reject empty and oversized buffers."""
    size = len(data)
    if size == 0:
        raise ImageDecodeError("Document is empty")
    if size > max_bytes:
        raise DocumentTooLargeError(size, max_bytes)


def _render_pdf_first_page(data, dpi):
    doc = pdfium.PdfDocument(bytes(data))
    try:
        if len(doc) == 0:
            raise ImageDecodeError("PDF has no pages")
        page = doc[0]
        # PDF points are 1/72 inch
        bitmap = page.render(scale=dpi / 72.0)
        return bitmap.to_pil().convert("RGB")
    finally:
        doc.close()


def decode_document(data, max_bytes=MAX_DOCUMENT_BYTES, pdf_dpi=200):
    """
    Decode a slip into a PIL image.

    JPEG and PNG are decoded by Pillow. PDFs are rendered from their first
    page with pypdfium2. The caller's buffer is only read.

    Args:
        data (bytes): Raw document.
        max_bytes (int): Size bound.
        pdf_dpi (int): Render resolution for PDFs.

    Returns:
        PIL.Image.Image: Fully loaded image.

    Raises:
        ImageDecodeError: If the document is too large, unsupported or unreadable.
    """
    check_document_size(data, max_bytes)
    kind = detect_format(data)

    if kind == 'pdf':
        try:
            return _render_pdf_first_page(data, pdf_dpi)
        except ImageDecodeError:
            raise
        except Exception as e:
            raise ImageDecodeError(f"Could not render PDF: {e}") from e

    try:
        img = Image.open(io.BytesIO(bytes(data)))
        # Force a full decode so truncated files fail here, not in the normalizer
        img.load()
        return img
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(f"Could not decode {kind.upper()} image: {e}") from e


def read_document(path):
    """
    Read a slip file from disk.

    Raises:
        ImageDecodeError: If the file cannot be read.
    """
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise ImageDecodeError(f"Could not read {path}: {e}") from e


def load_images_from_folder(folder_path):
    """
    Recursively scan a folder and return paths to all supported slip files.

    Args:
        folder_path (str): Path to the folder to scan.

    Returns:
        list[str]: Sorted paths to slip files found.
    """
    slip_files = []

    for root, _, filenames in os.walk(folder_path):
        for filename in filenames:
            if filename.lower().endswith(SUPPORTED_EXTENSIONS):
                slip_files.append(os.path.join(root, filename))

    return sorted(slip_files)
