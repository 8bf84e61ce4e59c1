"""
Document pipeline for the medical record digitizer.

Provides:
- DocumentPipeline: one synchronous run per document through seven stages
  (normalize, recognize, combine, correct, extract, score, assemble)
- Progress reporting through a callback and an ordered list of stage events
- Degraded results instead of exceptions for unreadable input
- process_document() convenience entry point
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .config import FAILURE_TRANSCRIPT, PipelineConfig, get_config
from .consensus import agreement, combine
from .engines import EngineOptions, RecognitionEngine, TesseractEngine
from .enhancement import EntityEnhancer
from .entities import EntityExtractor, MedicalEntities, merge_entities
from .images import get_image_stats, normalize_image
from .io import to_bgr_array
from .recognition import PassResult, RecognitionOrchestrator
from .record import RecordAssembler, StructuredRecord
from .scoring import ConfidenceScorer, ScoreBreakdown, find_medical_terms
from .vocabulary import VocabularyCorrector, apply_enhancement

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

STAGES = (
    (10, "Normalizing image"),
    (40, "Running recognition passes"),
    (55, "Combining passes"),
    (65, "Correcting medical vocabulary"),
    (80, "Extracting entities"),
    (90, "Scoring confidence"),
    (100, "Assembling record"),
)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class StageEvent:
    """Completion of one pipeline stage."""
    index: int  # 1-7
    percent: int
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "percent": self.percent, "label": self.label}


@dataclass
class PipelineResult:
    """Everything a caller gets back for one document."""
    transcript: str
    entities: MedicalEntities
    confidence_score: int
    structured_record: StructuredRecord
    processing_time_seconds: float
    status: str = "success"  # success, degraded
    modes_used: List[int] = field(default_factory=list)
    stage_events: List[StageEvent] = field(default_factory=list)
    score_breakdown: Optional[ScoreBreakdown] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_degraded(self) -> bool:
        return self.status == "degraded"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transcript": self.transcript,
            "entities": self.entities.to_dict(),
            "confidence_score": self.confidence_score,
            "structured_record": self.structured_record.render(),
            "record_sections": self.structured_record.to_dict(),
            "processing_time_seconds": round(self.processing_time_seconds, 3),
            "status": self.status,
            "modes_used": list(self.modes_used),
            "stage_events": [e.to_dict() for e in self.stage_events],
            "score_breakdown": self.score_breakdown.to_dict() if self.score_breakdown else None,
            "metadata": self.metadata,
        }


# ============================================================================
# Pipeline
# ============================================================================

class DocumentPipeline:
    """
    Orchestrates the digitization of one handwritten medical document.

    Coordinates:
    - Image normalization
    - Multi-pass recognition
    - Consensus combination
    - Vocabulary correction (medical mode)
    - Entity extraction, optionally merged with the enhancement service
    - Confidence scoring
    - Record assembly

    The recognition engine is injected or, when omitted, a Tesseract engine
    is created for this instance on first use.
    """

    def __init__(
        self,
        engine: Optional[RecognitionEngine] = None,
        enhancer: Optional[EntityEnhancer] = None,
        config: Optional[PipelineConfig] = None
    ):
        self.config = config or get_config()
        self._engine = engine
        self._engine_injected = engine is not None
        self._engine_failed = False
        self._enhancer = enhancer

        self.corrector = VocabularyCorrector()
        self.extractor = EntityExtractor()

    def _resolve_engine(self, config: PipelineConfig) -> Optional[RecognitionEngine]:
        if self._engine_injected:
            return self._engine
        if config is not self.config:
            return self._create_engine(config)
        if self._engine is None and not self._engine_failed:
            self._engine = self._create_engine(config)
            self._engine_failed = self._engine is None
        return self._engine

    @staticmethod
    def _create_engine(config: PipelineConfig) -> Optional[RecognitionEngine]:
        try:
            return TesseractEngine(EngineOptions.from_config(config.ocr))
        except ImportError as e:
            logger.error(f"Recognition engine unavailable: {e}")
            return None

    def _resolve_enhancer(self, config: PipelineConfig) -> Optional[EntityEnhancer]:
        if self._enhancer is not None:
            return self._enhancer
        return EntityEnhancer.from_config(config.enhancement)

    def process_document(
        self,
        image: Any,
        config: Optional[PipelineConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> PipelineResult:
        """
        Digitize one document image.

        Args:
            image: numpy array (BGR or grayscale), PIL image, or path
            config: Overrides the pipeline's configuration for this call
            on_progress: Called as on_progress(percent, label) after each stage
            metadata: Caller-known facts (patient_name, document_type, ...)

        Returns:
            PipelineResult; unreadable input yields a degraded result

        Raises:
            PipelineConfigError: If the configuration is invalid
        """
        config = (config or self.config).validate()
        metadata = dict(metadata or {})
        start_time = time.time()
        events: List[StageEvent] = []

        def report(index: int):
            percent, label = STAGES[index - 1]
            event = StageEvent(index=index, percent=percent, label=label)
            events.append(event)
            logger.info(f"[{percent:3d}%] {label}")
            if on_progress is not None:
                try:
                    on_progress(percent, label)
                except Exception as e:
                    logger.warning(f"Progress callback failed at '{label}': {e}")

        # 1. Normalize
        normalized = None
        image_stats = None
        try:
            array = to_bgr_array(image)
            image_stats = get_image_stats(array)
            normalized = normalize_image(
                array,
                max_dimension=config.image.max_dimension,
                contrast=config.image.contrast,
                brightness=config.image.brightness,
                threshold=config.image.threshold
            )
        except (FileNotFoundError, ValueError) as e:
            logger.error(f"Unreadable image: {e}")
        report(1)

        # 2. Recognize
        passes: List[PassResult] = []
        if normalized is not None:
            orchestrator = RecognitionOrchestrator(
                engine=self._resolve_engine(config),
                timeout_seconds=config.ocr.pass_timeout_seconds,
                max_workers=config.ocr.max_workers,
                parallel=config.ocr.parallel_passes
            )
            passes = orchestrator.recognize(normalized.image, config.ocr.segmentation_modes)
        report(2)

        # 3. Combine
        consensus = ""
        if passes:
            consensus = combine(
                passes,
                confidence_floor=config.ocr.confidence_floor,
                similarity_threshold=config.consensus.similarity_threshold,
                min_votes=config.consensus.min_votes,
                min_token_length=config.consensus.min_token_length
            )
        degraded = not consensus.strip()
        report(3)

        if degraded:
            return self._degraded_result(
                config, metadata, events, report, passes, image_stats, start_time
            )

        # 4. Correct
        transcript = self.corrector.correct(consensus) if config.medical_mode else consensus
        enhanced = None
        if config.use_enhancement:
            enhanced = self._enhance(transcript, config)
            if enhanced is not None and config.medical_mode:
                transcript = apply_enhancement(transcript, enhanced)
        report(4)

        # 5. Extract
        entities = merge_entities(self.extractor.extract(transcript), enhanced)
        report(5)

        # 6. Score
        scorer = ConfidenceScorer(base_score=config.scoring.base_score,
                                  max_score=config.scoring.max_score)
        breakdown = scorer.breakdown(transcript, entities)
        report(6)

        # 7. Assemble
        modes_used = [p.mode for p in passes]
        record_metadata = self._record_metadata(metadata, image_stats)
        record_metadata.update({
            "confidence_score": breakdown.total,
            "score_breakdown": breakdown,
            "medical_terms": find_medical_terms(transcript),
            "passes_used": len(passes),
            "segmentation_modes": [p.mode_name for p in passes],
            "status": "success",
            "original_transcript": consensus,
        })
        assembler = RecordAssembler(excerpt_length=config.record.excerpt_length)
        record = assembler.assemble(transcript, entities, record_metadata)
        report(7)

        elapsed = time.time() - start_time
        logger.info(f"Processed document in {elapsed:.2f}s (confidence {breakdown.total})")

        return PipelineResult(
            transcript=transcript,
            entities=entities,
            confidence_score=breakdown.total,
            structured_record=record,
            processing_time_seconds=elapsed,
            status="success",
            modes_used=modes_used,
            stage_events=events,
            score_breakdown=breakdown,
            metadata={
                "config": config.to_dict(),
                "passes": [p.to_dict() for p in passes],
                "pass_agreement": round(agreement(passes, consensus), 3),
                "enhanced": enhanced is not None,
                "image_stats": image_stats.to_dict() if image_stats else None,
                "processed_at": record_metadata["processed_at"],
            },
        )

    def _enhance(self, text: str, config: PipelineConfig) -> Optional[Dict[str, List[str]]]:
        enhancer = self._resolve_enhancer(config)
        if enhancer is None or not enhancer.is_configured:
            logger.debug("Enhancement requested but no service is configured")
            return None

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="enhancement")
        try:
            future = executor.submit(enhancer.enhance_entities, text)
            return future.result(timeout=config.enhancement.timeout_seconds)
        except FutureTimeoutError:
            logger.warning(
                f"Enhancement timed out after {config.enhancement.timeout_seconds}s, "
                "using local entities"
            )
            return None
        except Exception as e:
            logger.warning(f"Enhancement failed, using local entities: {e}")
            return None
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _record_metadata(metadata: Dict[str, Any], image_stats) -> Dict[str, Any]:
        record_metadata = dict(metadata)
        record_metadata.setdefault("processed_at", datetime.now().isoformat())
        if image_stats is not None:
            record_metadata.setdefault("image_quality", image_stats.quality)
        return record_metadata

    def _degraded_result(
        self,
        config: PipelineConfig,
        metadata: Dict[str, Any],
        events: List[StageEvent],
        report: Callable[[int], None],
        passes: List[PassResult],
        image_stats,
        start_time: float
    ) -> PipelineResult:
        logger.warning("No usable recognition output, returning failure transcript")
        entities = MedicalEntities()
        report(4)
        report(5)
        report(6)

        record_metadata = self._record_metadata(metadata, image_stats)
        record_metadata.update({
            "confidence_score": 0,
            "passes_used": len(passes),
            "segmentation_modes": [p.mode_name for p in passes],
            "status": "degraded",
            "original_transcript": FAILURE_TRANSCRIPT,
        })
        assembler = RecordAssembler(excerpt_length=config.record.excerpt_length)
        record = assembler.assemble(FAILURE_TRANSCRIPT, entities, record_metadata)
        report(7)

        return PipelineResult(
            transcript=FAILURE_TRANSCRIPT,
            entities=entities,
            confidence_score=0,
            structured_record=record,
            processing_time_seconds=time.time() - start_time,
            status="degraded",
            modes_used=[p.mode for p in passes],
            stage_events=events,
            score_breakdown=None,
            metadata={
                "config": config.to_dict(),
                "passes": [p.to_dict() for p in passes],
                "enhanced": False,
                "image_stats": image_stats.to_dict() if image_stats else None,
                "processed_at": record_metadata["processed_at"],
            },
        )


def process_document(
    image: Any,
    config: Optional[PipelineConfig] = None,
    engine: Optional[RecognitionEngine] = None,
    enhancer: Optional[EntityEnhancer] = None,
    on_progress: Optional[ProgressCallback] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> PipelineResult:
    """Digitize one document with a fresh pipeline."""
    pipeline = DocumentPipeline(engine=engine, enhancer=enhancer, config=config)
    return pipeline.process_document(image, on_progress=on_progress, metadata=metadata)


# ============================================================================
# Example Usage
# ============================================================================

if __name__ == "__main__":
    import sys
    from .io import save_json

    if len(sys.argv) > 1:
        image_path = sys.argv[1]
        output_path = sys.argv[2] if len(sys.argv) > 2 else "record.json"

        result = process_document(
            image_path,
            on_progress=lambda percent, label: print(f"{percent:3d}% {label}")
        )

        print(result.structured_record.render())
        print(f"Confidence: {result.confidence_score} ({result.status})")

        save_json(result.to_dict(), output_path)
        print(f"Saved result to: {output_path}")
    else:
        print("Usage: python -m digitizer.pipeline <input_image> [output_json]")
