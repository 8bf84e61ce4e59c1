"""
Handwritten Medical Record Digitizer
====================================

Turns the noisy, multi-pass output of an OCR engine run on a handwritten
or scanned medical document into a consensus transcript, typed medical
entities, a bounded confidence score and a fixed-section structured record.

Main components:
- Image normalization (resize, grayscale, contrast, fixed threshold)
- Multi-pass recognition across Tesseract segmentation modes
- Cross-pass consensus by fuzzy word voting
- Medical vocabulary correction
- Entity extraction (names, ages, medications, symptoms, vitals, dates,
  addresses, phone numbers) with optional LLM enhancement
- Confidence scoring and record assembly
"""

__version__ = "1.0.0"
__author__ = "Medical Records Digitization Team"

from .config import (
    PipelineConfig, PipelineConfigError, SegmentationMode, FAILURE_TRANSCRIPT, get_config,
)
from .images import normalize_image, get_image_stats
from .engines import RecognitionEngine, EngineResult, EngineOptions, TesseractEngine
from .recognition import RecognitionOrchestrator, PassResult
from .consensus import combine, similarity
from .vocabulary import VocabularyCorrector, apply_enhancement
from .entities import EntityExtractor, MedicalEntities, CATEGORIES, NONE_SENTINEL, merge_entities
from .enhancement import EntityEnhancer
from .scoring import ConfidenceScorer, ScoreBreakdown
from .record import RecordAssembler, StructuredRecord, RecordSection, RecordField
from .pipeline import DocumentPipeline, PipelineResult, StageEvent, process_document

__all__ = [
    # Config
    "PipelineConfig", "PipelineConfigError", "SegmentationMode", "FAILURE_TRANSCRIPT",
    "get_config",
    # Images
    "normalize_image", "get_image_stats",
    # Recognition
    "RecognitionEngine", "EngineResult", "EngineOptions", "TesseractEngine",
    "RecognitionOrchestrator", "PassResult",
    # Consensus and correction
    "combine", "similarity", "VocabularyCorrector", "apply_enhancement",
    # Entities
    "EntityExtractor", "MedicalEntities", "CATEGORIES", "NONE_SENTINEL", "merge_entities",
    "EntityEnhancer",
    # Scoring and records
    "ConfidenceScorer", "ScoreBreakdown",
    "RecordAssembler", "StructuredRecord", "RecordSection", "RecordField",
    # Pipeline
    "DocumentPipeline", "PipelineResult", "StageEvent", "process_document",
]
