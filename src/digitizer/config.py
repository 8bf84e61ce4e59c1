"""
Configuration and constants for the medical record digitizer.

This module provides:
- Logging configuration
- Segmentation mode identifiers
- Processing parameters (normalization, recognition, consensus, scoring)
- API configuration for the optional entity enhancement service
- Configuration validation
"""

import os
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, List, Dict, Any
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: Optional[int] = None) -> None:
    """Apply the package log format. DIGITIZER_DEBUG=true selects DEBUG."""
    if level is None:
        debug = os.environ.get("DIGITIZER_DEBUG", "").lower() == "true"
        level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)


configure_logging()
logger = logging.getLogger("digitizer")


# ============================================================================
# Errors
# ============================================================================

class PipelineConfigError(ValueError):
    """Raised when a pipeline configuration cannot be run."""


# ============================================================================
# Segmentation Modes
# ============================================================================

class SegmentationMode(IntEnum):
    """Tesseract page segmentation modes used by the recognition passes."""
    AUTO = 3
    SINGLE_COLUMN = 4
    SINGLE_BLOCK = 6
    SINGLE_LINE = 7
    SINGLE_WORD = 8
    SPARSE_TEXT = 11
    RAW_LINE = 13


DEFAULT_SEGMENTATION_MODES = [
    SegmentationMode.SINGLE_BLOCK,
    SegmentationMode.SINGLE_LINE,
    SegmentationMode.SINGLE_WORD,
    SegmentationMode.SPARSE_TEXT,
    SegmentationMode.RAW_LINE,
]

# Characters a handwritten clinical note is expected to contain
MEDICAL_CHAR_WHITELIST = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
    "0123456789.,;:()[]/-+= °%"
)

FAILURE_TRANSCRIPT = "[Text extraction failed - please retry with a clearer image]"


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class ImageConfig:
    """Image normalization configuration."""
    max_dimension: int = 2000
    contrast: float = 4.0
    brightness: float = 30.0
    threshold: int = 150  # pixels above become white


@dataclass
class OCRConfig:
    """Recognition pass configuration."""
    segmentation_modes: List[int] = field(
        default_factory=lambda: list(DEFAULT_SEGMENTATION_MODES)
    )
    # Tesseract configuration
    tesseract_lang: str = "eng"
    oem: int = 1  # LSTM only
    char_whitelist: Optional[str] = MEDICAL_CHAR_WHITELIST
    preserve_interword_spaces: bool = True
    enable_dict_correction: bool = True
    enable_bigram_correction: bool = True
    extra_variables: Dict[str, str] = field(default_factory=dict)
    # Passes below this confidence (0-100) do not vote
    confidence_floor: float = 30.0
    pass_timeout_seconds: float = 30.0
    parallel_passes: bool = True
    max_workers: Optional[int] = None


@dataclass
class ConsensusConfig:
    """Cross-pass word voting configuration."""
    # Both values are uncalibrated defaults carried over from the first deployment
    similarity_threshold: float = 0.8
    min_token_length: int = 3
    min_votes: int = 2


@dataclass
class EnhancementConfig:
    """Optional LLM entity enhancement service."""
    enabled: bool = False
    api_url: str = "https://api.openai.com/v1/chat/completions"
    api_key: Optional[str] = None
    model: str = "gpt-4"
    temperature: float = 0.3
    max_tokens: int = 1000
    timeout_seconds: float = 30.0


@dataclass
class ScoringConfig:
    """Confidence score configuration."""
    base_score: int = 60
    max_score: int = 98


@dataclass
class RecordConfig:
    """Structured record configuration."""
    excerpt_length: int = 1000


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    image: ImageConfig = field(default_factory=ImageConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)
    consensus: ConsensusConfig = field(default_factory=ConsensusConfig)
    enhancement: EnhancementConfig = field(default_factory=EnhancementConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    record: RecordConfig = field(default_factory=RecordConfig)

    # Global settings
    medical_mode: bool = True  # gates vocabulary correction
    debug_mode: bool = False

    @property
    def use_enhancement(self) -> bool:
        return self.enhancement.enabled

    def validate(self) -> "PipelineConfig":
        """
        Check that the configuration can be run.

        Raises:
            PipelineConfigError: On the first invalid setting found
        """
        modes = self.ocr.segmentation_modes
        if not modes:
            raise PipelineConfigError("At least one segmentation mode is required")
        for mode in modes:
            try:
                SegmentationMode(int(mode))
            except (TypeError, ValueError):
                raise PipelineConfigError(f"Unknown segmentation mode: {mode!r}")

        if not 0 <= self.ocr.confidence_floor <= 100:
            raise PipelineConfigError(
                f"Confidence floor must be within 0-100, got {self.ocr.confidence_floor}"
            )
        if self.ocr.pass_timeout_seconds <= 0:
            raise PipelineConfigError("Recognition pass timeout must be positive")
        if self.ocr.max_workers is not None and self.ocr.max_workers < 1:
            raise PipelineConfigError("max_workers must be at least 1")

        if not 0 < self.consensus.similarity_threshold <= 1:
            raise PipelineConfigError(
                f"Similarity threshold must be within (0, 1], "
                f"got {self.consensus.similarity_threshold}"
            )
        if self.consensus.min_votes < 1:
            raise PipelineConfigError("min_votes must be at least 1")

        if self.enhancement.timeout_seconds <= 0:
            raise PipelineConfigError("Enhancement timeout must be positive")

        if not 50 <= self.scoring.base_score <= 70:
            raise PipelineConfigError(
                f"Base score must be within 50-70, got {self.scoring.base_score}"
            )
        if self.image.max_dimension <= 0:
            raise PipelineConfigError("max_dimension must be positive")
        if not 0 <= self.image.threshold <= 255:
            raise PipelineConfigError("Binarization threshold must be within 0-255")

        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segmentation_modes": [int(m) for m in self.ocr.segmentation_modes],
            "confidence_floor": self.ocr.confidence_floor,
            "similarity_threshold": self.consensus.similarity_threshold,
            "use_enhancement": self.use_enhancement,
            "medical_mode": self.medical_mode,
        }


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    if os.environ.get("DIGITIZER_DEBUG", "").lower() == "true":
        config.debug_mode = True

    floor = os.environ.get("DIGITIZER_CONFIDENCE_FLOOR")
    if floor:
        config.ocr.confidence_floor = float(floor)

    timeout = os.environ.get("DIGITIZER_PASS_TIMEOUT")
    if timeout:
        config.ocr.pass_timeout_seconds = float(timeout)

    lang = os.environ.get("DIGITIZER_TESSERACT_LANG")
    if lang:
        config.ocr.tesseract_lang = lang

    # Enhancement service credentials from environment
    config.enhancement.api_key = os.environ.get("OPENAI_API_KEY")
    config.enhancement.enabled = bool(config.enhancement.api_key)
    model = os.environ.get("DIGITIZER_ENHANCEMENT_MODEL")
    if model:
        config.enhancement.model = model

    return config
