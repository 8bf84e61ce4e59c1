"""
Multi-pass recognition for the medical record digitizer.

Provides:
- One recognition pass per segmentation mode
- Optional concurrent execution on a worker pool
- Per-pass timeouts and failure isolation
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError, wait
from dataclasses import dataclass
from typing import List, Optional, Sequence, Dict, Any
import numpy as np

from .config import SegmentationMode
from .engines import RecognitionEngine, EngineResult

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class PassResult:
    """Output of one recognition pass."""
    mode: int
    text: str
    raw_confidence: float  # 0-100

    @property
    def mode_name(self) -> str:
        try:
            return SegmentationMode(self.mode).name
        except ValueError:
            return f"PSM_{self.mode}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": int(self.mode),
            "mode_name": self.mode_name,
            "text": self.text,
            "raw_confidence": self.raw_confidence,
        }


# ============================================================================
# Recognition Orchestrator
# ============================================================================

class RecognitionOrchestrator:
    """
    Runs the recognition engine once per segmentation mode.

    A pass that raises, times out or returns blank text is logged and left
    out of the result; it never aborts the run. Results keep the order of
    the requested modes.
    """

    def __init__(
        self,
        engine: Optional[RecognitionEngine],
        timeout_seconds: float = 30.0,
        max_workers: Optional[int] = None,
        parallel: bool = True
    ):
        self.engine = engine
        self.timeout_seconds = timeout_seconds
        self.max_workers = max_workers
        self.parallel = parallel

    def recognize(self, image: np.ndarray, modes: Sequence[int]) -> List[PassResult]:
        """
        Run every requested pass over a normalized image.

        Args:
            image: Normalized image
            modes: Segmentation modes, one pass each

        Returns:
            PassResults for the passes that produced text
        """
        if self.engine is None:
            logger.warning("Recognition engine unavailable, no passes run")
            return []

        modes = list(modes)
        if self.parallel and len(modes) > 1:
            outcomes = self._recognize_concurrently(image, modes)
        else:
            outcomes = [self._run_with_timeout(image, mode) for mode in modes]

        results = [r for r in outcomes if r is not None]
        logger.info(f"Recognition: {len(results)}/{len(modes)} passes produced text")
        return results

    def _recognize_concurrently(
        self,
        image: np.ndarray,
        modes: List[int]
    ) -> List[Optional[PassResult]]:
        workers = self.max_workers or len(modes)
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="recognition")
        try:
            futures = [executor.submit(self._call_engine, image, mode) for mode in modes]
            done, not_done = wait(futures, timeout=self.timeout_seconds)

            outcomes = []
            for mode, future in zip(modes, futures):
                if future in not_done:
                    logger.warning(f"Pass {self._label(mode)} timed out after {self.timeout_seconds}s")
                    outcomes.append(None)
                    continue
                outcomes.append(self._collect(mode, future))
            return outcomes
        finally:
            # Do not wait on engine calls that are still hung
            executor.shutdown(wait=False, cancel_futures=True)

    def _run_with_timeout(self, image: np.ndarray, mode: int) -> Optional[PassResult]:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recognition")
        try:
            future = executor.submit(self._call_engine, image, mode)
            try:
                future.exception(timeout=self.timeout_seconds)
            except FutureTimeoutError:
                logger.warning(f"Pass {self._label(mode)} timed out after {self.timeout_seconds}s")
                return None
            return self._collect(mode, future)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _call_engine(self, image: np.ndarray, mode: int) -> EngineResult:
        return self.engine.recognize(image, mode)

    def _collect(self, mode: int, future) -> Optional[PassResult]:
        error = future.exception()
        if error is not None:
            logger.warning(f"Pass {self._label(mode)} failed: {error}")
            return None

        result = future.result()
        text = (result.text or "").strip() if result is not None else ""
        if not text:
            logger.debug(f"Pass {self._label(mode)} returned no text")
            return None

        confidence = min(100.0, max(0.0, float(result.confidence)))
        logger.debug(f"Pass {self._label(mode)}: {len(text)} chars @ {confidence:.1f}")
        return PassResult(mode=int(mode), text=text, raw_confidence=confidence)

    @staticmethod
    def _label(mode: int) -> str:
        try:
            return f"{SegmentationMode(int(mode)).name}({int(mode)})"
        except ValueError:
            return f"PSM_{mode}"
