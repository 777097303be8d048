# grading.py
import logging
import random
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Protocol

from config import GRADER, GRADES, MOCK_CONFIDENCE_RANGE, MODEL_PATH

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradingResult:
    grade: str  # one of GRADES
    confidence: float  # percentage, 0..100

    def __post_init__(self):
        if self.grade not in GRADES:
            raise ValueError(f"Unknown grade {self.grade!r}")
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Confidence {self.confidence} outside 0..100")


class Grader(Protocol):
    def grade(self, image_bytes: bytes) -> GradingResult:
        ...


class RandomGrader:
    """Stand-in grader: uniform grade, confidence drawn from a fixed band.

    Not a model. It exists so the upload workflow runs end to end without
    weights on disk.
    """

    def __init__(self, rng: Optional[random.Random] = None, confidence_range=MOCK_CONFIDENCE_RANGE):
        self.rng = rng or random.Random()
        self.confidence_range = confidence_range

    def grade(self, image_bytes: bytes) -> GradingResult:
        low, high = self.confidence_range
        return GradingResult(grade=self.rng.choice(GRADES), confidence=float(self.rng.randint(low, high)))


class ModelGrader:
    """Grades with the ResNet checkpoint at MODEL_PATH (requires the `model` extra)."""

    def __init__(self, model_path: str = MODEL_PATH):
        # torch is optional; import only when this grader is selected
        import prediction

        self._prediction = prediction
        self._model = prediction.load_model(model_path)

    def grade(self, image_bytes: bytes) -> GradingResult:
        result = self._prediction.predict_fibrosis(self._model, image_bytes)
        return GradingResult(grade=result["grade"], confidence=round(result["confidence"], 1))


@lru_cache(maxsize=None)
def get_grader() -> Grader:
    """FastAPI dependency returning the configured grader (built once per process)."""
    if GRADER == "model":
        logger.info("Loading fibrosis model from %s", MODEL_PATH)
        return ModelGrader()
    if GRADER != "mock":
        raise RuntimeError(f"Unknown GRADER setting {GRADER!r}")
    logger.info("Using mock grader; grades are random")
    return RandomGrader()
