"""
Image normalization utilities for the medical record digitizer.

Provides:
- Grayscale conversion
- Contrast/brightness adjustment
- Fixed-threshold binarization
- Bounded resizing
- Full normalization pipeline
- Image quality statistics
"""

import logging
from dataclasses import dataclass, field
from typing import Tuple, Optional, List, Dict, Any
import numpy as np

logger = logging.getLogger(__name__)

# Pixel types cv2.cvtColor and cv2.resize accept
SUPPORTED_DTYPES = (np.dtype(np.uint8), np.dtype(np.uint16), np.dtype(np.float32))


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class NormalizationResult:
    """Result of image normalization."""
    image: np.ndarray
    original_shape: Tuple[int, int]
    scale: float = 1.0
    transformations: List[str] = field(default_factory=list)


@dataclass
class ImageStats:
    """Statistics about an input image."""
    height: int
    width: int
    channels: int
    mean_intensity: float
    std_intensity: float
    dark_ratio: float
    edge_ratio: float
    quality: str = "good"  # excellent, good, fair, poor
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "height": self.height,
            "width": self.width,
            "channels": self.channels,
            "mean_intensity": round(self.mean_intensity, 2),
            "std_intensity": round(self.std_intensity, 2),
            "dark_ratio": round(self.dark_ratio, 4),
            "edge_ratio": round(self.edge_ratio, 4),
            "quality": self.quality,
            "recommendations": list(self.recommendations),
        }


# ============================================================================
# Core Normalization Functions
# ============================================================================

def validate_image(image: Optional[np.ndarray]) -> np.ndarray:
    """
    Reject inputs that cannot be treated as an image.

    Raises:
        ValueError: If the image is missing, empty, oddly shaped or of a pixel
            type OpenCV cannot convert
    """
    if image is None:
        raise ValueError("Image is unreadable: no pixel data")
    if not isinstance(image, np.ndarray):
        raise ValueError(f"Image is unreadable: expected numpy array, got {type(image).__name__}")
    if image.size == 0:
        raise ValueError("Image is unreadable: empty array")
    if image.ndim not in (2, 3):
        raise ValueError(f"Unexpected image shape: {image.shape}")
    if image.ndim == 3 and image.shape[2] not in (1, 3, 4):
        raise ValueError(f"Unexpected channel count: {image.shape[2]}")
    if image.dtype not in SUPPORTED_DTYPES:
        raise ValueError(f"Image is unreadable: unsupported pixel type {image.dtype}")
    return image


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert image to grayscale if it's color.

    Args:
        image: Input image (BGR, BGRA or grayscale)

    Returns:
        Grayscale image
    """
    import cv2

    if len(image.shape) == 2:
        return image
    elif len(image.shape) == 3:
        if image.shape[2] == 3:
            return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        elif image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif image.shape[2] == 1:
            return image.squeeze(axis=2)

    raise ValueError(f"Unexpected image shape: {image.shape}")


def adjust_contrast(
    gray: np.ndarray,
    contrast: float = 4.0,
    brightness: float = 30.0
) -> np.ndarray:
    """
    Stretch intensities around mid-gray and shift them.

    Computes ``(gray - 128) * contrast + 128 + brightness`` clipped to 0-255.
    """
    adjusted = (gray.astype(np.float32) - 128.0) * contrast + 128.0 + brightness
    return np.clip(adjusted, 0, 255).astype(np.uint8)


def binarize(gray: np.ndarray, threshold: int = 150) -> np.ndarray:
    """
    Fixed-threshold binarization.

    Pixels strictly above ``threshold`` become white (255), the rest black.
    """
    binary = np.where(gray > threshold, 255, 0).astype(np.uint8)
    logger.debug(f"Applied fixed binarization at {threshold}")
    return binary


def resize_to_max_dimension(
    image: np.ndarray,
    max_dimension: int = 2000
) -> Tuple[np.ndarray, float]:
    """
    Shrink an image so its longer edge is at most ``max_dimension``.

    Aspect ratio is preserved and images are never upscaled.

    Returns:
        Tuple of (resized image, scale factor applied)
    """
    import cv2

    h, w = image.shape[:2]
    longest = max(h, w)
    if longest <= max_dimension:
        return image, 1.0

    scale = max_dimension / longest
    new_width = max(1, int(round(w * scale)))
    new_height = max(1, int(round(h * scale)))
    resized = cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_AREA)

    logger.debug(f"Resized image: {image.shape[:2]} -> {resized.shape[:2]} (scale={scale:.3f})")
    return resized, scale


# ============================================================================
# Main Normalization Pipeline
# ============================================================================

def normalize_image(
    image: np.ndarray,
    max_dimension: int = 2000,
    contrast: float = 4.0,
    brightness: float = 30.0,
    threshold: int = 150
) -> NormalizationResult:
    """
    Prepare an image for the recognition passes.

    Steps, in order: bound the size, convert to grayscale, adjust
    contrast/brightness, binarize at a fixed threshold.

    Args:
        image: Input image (BGR, BGRA or grayscale)
        max_dimension: Longest allowed edge in pixels
        contrast: Contrast multiplier around mid-gray
        brightness: Brightness offset added after the contrast stretch
        threshold: Binarization threshold

    Returns:
        NormalizationResult with the binary image and metadata

    Raises:
        ValueError: If the image is unreadable
    """
    validate_image(image)
    original_shape = image.shape[:2]
    transformations = []

    processed, scale = resize_to_max_dimension(image, max_dimension)
    if scale != 1.0:
        transformations.append(f"resize_to_{max_dimension}px")

    processed = to_grayscale(processed)
    transformations.append("grayscale")

    processed = adjust_contrast(processed, contrast, brightness)
    transformations.append(f"contrast_{contrast:g}_brightness_{brightness:g}")

    processed = binarize(processed, threshold)
    transformations.append(f"binarize_fixed_{threshold}")

    logger.info(f"Normalization complete: {' -> '.join(transformations)}")

    return NormalizationResult(
        image=processed,
        original_shape=original_shape,
        scale=scale,
        transformations=transformations
    )


def get_image_stats(image: np.ndarray) -> ImageStats:
    """
    Calculate statistics and a coarse quality label for an image.

    Dark pixels are those below 128; edge pixels differ from a horizontal
    neighbour by more than 50 grey levels.

    Args:
        image: Input image

    Returns:
        ImageStats with image properties
    """
    validate_image(image)
    h, w = image.shape[:2]
    channels = 1 if len(image.shape) == 2 else image.shape[2]

    gray = to_grayscale(image).astype(np.int16)
    total = float(h * w)
    mean_intensity = float(np.mean(gray))
    std_intensity = float(np.std(gray))
    dark_ratio = float(np.count_nonzero(gray < 128)) / total

    if w > 2:
        diff = np.abs(np.diff(gray, axis=1)) > 50
        # A pixel is an edge if either its left or right step is large
        edges = diff[:, :-1] | diff[:, 1:]
        edge_ratio = float(np.count_nonzero(edges)) / total
    else:
        edge_ratio = 0.0

    quality = "good"
    recommendations = []
    if edge_ratio < 0.05:
        quality = "poor"
        recommendations.append("Low text contrast - consider image enhancement")
    elif edge_ratio < 0.08:
        quality = "fair"
    elif edge_ratio > 0.3:
        quality = "excellent"
        recommendations.append("High quality image - optimal for OCR")

    if dark_ratio < 0.02:
        quality = "poor"
        recommendations.append("Very light text - increase contrast")

    return ImageStats(
        height=h,
        width=w,
        channels=channels,
        mean_intensity=mean_intensity,
        std_intensity=std_intensity,
        dark_ratio=dark_ratio,
        edge_ratio=edge_ratio,
        quality=quality,
        recommendations=recommendations
    )


# ============================================================================
# Example Usage
# ============================================================================

if __name__ == "__main__":
    import sys
    import cv2

    if len(sys.argv) > 1:
        image_path = sys.argv[1]
        output_path = sys.argv[2] if len(sys.argv) > 2 else "normalized.png"

        image = cv2.imread(image_path)
        if image is None:
            print(f"Failed to load image: {image_path}")
            sys.exit(1)

        stats = get_image_stats(image)
        print(f"Image stats: {stats}")

        result = normalize_image(image)
        print(f"Transformations: {result.transformations}")

        cv2.imwrite(output_path, result.image)
        print(f"Saved normalized image to: {output_path}")
    else:
        print("Usage: python images.py <input_image> [output_image]")
