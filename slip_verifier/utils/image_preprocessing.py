"""
Image Preprocessing Module
--------------------------
Normalizes a decoded slip image before OCR.
Includes orientation fix, grayscale conversion, contrast stretching,
sharpening, denoising, binarization and downscaling.
"""

import cv2
import numpy as np
from PIL import ImageOps

from slip_verifier.core.errors import ImageDecodeError

CONTRAST_SLOPE = 1.3
SHARPEN_SIGMA = 1.5
SHARPEN_AMOUNT = 2.0
MEDIAN_WINDOW = 5
BRIGHTNESS_GAIN = 1.1


def _stretch_histogram(gray):
    """Min-max stretch to the full 0..255 range. Flat images are returned unchanged."""
    lo = int(gray.min())
    hi = int(gray.max())
    if hi <= lo:
        return gray.copy()
    scaled = (gray.astype(np.float32) - lo) * (255.0 / (hi - lo))
    return np.clip(np.rint(scaled), 0, 255).astype(np.uint8)


def normalize_image(image, max_dimension=2400, threshold=150):
    """
    Prepare a slip image for text recognition.

    Steps:
        1. Auto-rotate from EXIF orientation
        2. Convert to grayscale
        3. Linear contrast stretch (slope 1.3, no offset)
        4. Histogram normalize
        5. Unsharp mask (sigma 1.5) to emphasize thin printed strokes
        6. Median filter (window 5) to remove speckle noise
        7. Brighten by 10%
        8. Binarize at a fixed threshold (values >= threshold become white)
        9. Downscale to max_dimension on the long edge (never upscale)

    Args:
        image (PIL.Image.Image): Decoded slip. Not modified.
        max_dimension (int): Long-edge cap in pixels.
        threshold (int): Luminance threshold, 0..255.

    Returns:
        numpy.ndarray: Single-channel uint8 array containing only 0 and 255.

    Raises:
        ImageDecodeError: If the image cannot be processed.
    """
    try:
        oriented = ImageOps.exif_transpose(image)
        gray = np.asarray(oriented.convert("L"), dtype=np.uint8)
        if gray.size == 0:
            raise ImageDecodeError("Image has no pixels")

        contrasted = np.clip(np.rint(gray.astype(np.float32) * CONTRAST_SLOPE), 0, 255).astype(np.uint8)
        normalized = _stretch_histogram(contrasted)

        blurred = cv2.GaussianBlur(normalized, (0, 0), SHARPEN_SIGMA)
        sharpened = cv2.addWeighted(
            normalized, 1.0 + SHARPEN_AMOUNT, blurred, -SHARPEN_AMOUNT, 0
        )

        denoised = cv2.medianBlur(sharpened, MEDIAN_WINDOW)

        # Grayscale already, so there is no colour cast left to remove
        brightened = cv2.convertScaleAbs(denoised, alpha=BRIGHTNESS_GAIN, beta=0)

        # THRESH_BINARY is strict (> thresh); pixels at the threshold are white
        _, binary = cv2.threshold(brightened, threshold - 1, 255, cv2.THRESH_BINARY)

        height, width = binary.shape[:2]
        long_edge = max(height, width)
        if long_edge > max_dimension:
            scale = max_dimension / float(long_edge)
            new_size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
            resized = cv2.resize(binary, new_size, interpolation=cv2.INTER_AREA)
            # Area interpolation produces greys; snap back to two levels
            _, binary = cv2.threshold(resized, 127, 255, cv2.THRESH_BINARY)

        return binary

    except ImageDecodeError:
        raise
    except (cv2.error, OSError, ValueError) as e:
        raise ImageDecodeError(f"Image normalization failed: {e}") from e
