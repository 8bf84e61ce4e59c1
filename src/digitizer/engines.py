"""
Recognition engine adapters for the medical record digitizer.

Provides:
- The engine interface consumed by the recognition passes
- An options bag for engine-specific settings
- Tesseract engine (via pytesseract)
"""

import logging
import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import numpy as np

from .config import OCRConfig, MEDICAL_CHAR_WHITELIST

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class EngineResult:
    """Text and confidence (0-100) returned by one engine call."""
    text: str
    confidence: float
    engine_used: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "engine": self.engine_used,
        }


@dataclass
class EngineOptions:
    """Engine-specific settings passed through to the recognizer."""
    language: str = "eng"
    oem: int = 1
    char_whitelist: Optional[str] = MEDICAL_CHAR_WHITELIST
    preserve_interword_spaces: bool = True
    enable_dict_correction: bool = True
    enable_bigram_correction: bool = True
    extra_variables: Dict[str, str] = field(default_factory=dict)
    timeout_seconds: float = 0  # 0 = no engine-side timeout

    @classmethod
    def from_config(cls, config: OCRConfig) -> "EngineOptions":
        return cls(
            language=config.tesseract_lang,
            oem=config.oem,
            char_whitelist=config.char_whitelist,
            preserve_interword_spaces=config.preserve_interword_spaces,
            enable_dict_correction=config.enable_dict_correction,
            enable_bigram_correction=config.enable_bigram_correction,
            extra_variables=dict(config.extra_variables),
            timeout_seconds=config.pass_timeout_seconds,
        )

    def variables(self) -> Dict[str, str]:
        """Tesseract ``-c`` variables in the order they are emitted."""
        variables = {}
        if self.char_whitelist:
            variables["tessedit_char_whitelist"] = self.char_whitelist
        variables["preserve_interword_spaces"] = "1" if self.preserve_interword_spaces else "0"
        variables["tessedit_enable_dict_correction"] = "1" if self.enable_dict_correction else "0"
        variables["tessedit_enable_bigram_correction"] = "1" if self.enable_bigram_correction else "0"
        variables.update(self.extra_variables)
        return variables

    def to_tesseract_config(self, mode: int) -> str:
        """Render the options as a Tesseract command-line config string."""
        parts = [f"--oem {self.oem}", f"--psm {int(mode)}"]
        for key, value in self.variables().items():
            parts.append(f"-c {key}={shlex.quote(str(value))}")
        return " ".join(parts)


# ============================================================================
# Engine Interface
# ============================================================================

class RecognitionEngine(ABC):
    """An external recognizer: image + segmentation mode -> text + confidence."""

    name = "engine"

    @abstractmethod
    def recognize(self, image: np.ndarray, mode: int) -> EngineResult:
        """Recognize text in ``image`` using segmentation ``mode``."""


# ============================================================================
# Tesseract Engine
# ============================================================================

class TesseractEngine(RecognitionEngine):
    """OCR using Tesseract."""

    name = "tesseract"

    def __init__(self, options: Optional[EngineOptions] = None):
        try:
            import pytesseract
            self.pytesseract = pytesseract

            # Test that tesseract is installed
            pytesseract.get_tesseract_version()

        except Exception as e:
            raise ImportError(
                f"Tesseract not available: {e}\n"
                "Install with: pip install pytesseract\n"
                "Also install Tesseract: https://github.com/tesseract-ocr/tesseract"
            )

        self.options = options or EngineOptions()

    def recognize(self, image: np.ndarray, mode: int) -> EngineResult:
        """
        Recognize text using Tesseract.

        Word confidences are averaged; entries Tesseract marks with -1 are
        ignored. Engine errors and timeouts propagate to the caller.
        """
        config = self.options.to_tesseract_config(mode)
        data = self.pytesseract.image_to_data(
            image,
            lang=self.options.language,
            config=config,
            output_type=self.pytesseract.Output.DICT,
            timeout=self.options.timeout_seconds,
        )

        lines = []
        current_line = []
        current_key = None
        confidences = []

        for i in range(len(data['text'])):
            text = data['text'][i].strip()
            conf = float(data['conf'][i])

            if conf < 0 or not text:  # -1 means no valid confidence
                continue

            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            if key != current_key:
                if current_line:
                    lines.append(' '.join(current_line))
                current_line = [text]
                current_key = key
            else:
                current_line.append(text)

            confidences.append(conf)

        if current_line:
            lines.append(' '.join(current_line))

        full_text = '\n'.join(lines)
        avg_confidence = float(np.mean(confidences)) if confidences else 0.0

        logger.debug(f"Tesseract psm {int(mode)}: {len(full_text)} chars, confidence {avg_confidence:.1f}")

        return EngineResult(
            text=full_text,
            confidence=avg_confidence,
            engine_used=self.name
        )
