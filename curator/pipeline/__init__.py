"""Session curation pipeline."""

from .analysis import AnalysisProvider, fetch_visual_score
from .curation import CurationPipeline, CurationResult, TrainingExample
from .scoring import compute_category_scores

__all__ = [
    "AnalysisProvider",
    "CurationPipeline",
    "CurationResult",
    "TrainingExample",
    "compute_category_scores",
    "fetch_visual_score",
]
