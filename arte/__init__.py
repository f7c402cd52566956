"""Adaptive Random Tree Ensemble for evolving data stream classification."""
from __future__ import annotations

from .ensemble import ARTEClassifier
from .evaluation import PrequentialResults, plot_windowed_accuracy, prequential_evaluation
from .member import ARTEBaseLearner
from .regularized import AREClassifier
from .stream import StreamSchema, read_arff
from .tree import ARTEHoeffdingTree
from .window import AccuracyWindow

__all__ = [
    "AREClassifier",
    "ARTEBaseLearner",
    "ARTEClassifier",
    "ARTEHoeffdingTree",
    "AccuracyWindow",
    "PrequentialResults",
    "StreamSchema",
    "plot_windowed_accuracy",
    "prequential_evaluation",
    "read_arff",
]
