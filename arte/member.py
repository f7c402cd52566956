from __future__ import annotations

import logging
import random
import typing

from river import base
from river.drift import NoDrift

from . import utils
from .tree import ARTEHoeffdingTree
from .window import AccuracyWindow

logger = logging.getLogger(__name__)

ModelFactory = typing.Callable[[int, random.Random], ARTEHoeffdingTree]


class ARTEBaseLearner:
    """A single tree of the ensemble together with its drift detector and its
    accuracy window.

    The member owns a random number generator which is shared with its tree (and
    through it with the tree's numeric splitters). The ensemble reseeds it before
    every training step so that a member draws the same subspaces and cut points
    whatever the order in which members are trained.

    When the drift detector fires, the member is reset in place: new tree with a
    freshly drawn subspace size, new detector, empty window. `idx_original` never
    changes.
    """

    def __init__(
        self,
        idx_original: int,
        model_factory: ModelFactory,
        subspace_size: int,
        subspace_range: tuple[int, int],
        drift_detector: base.DriftDetector | None,
        window_size: int,
        created_on: int,
    ):
        self.idx_original = idx_original
        self.created_on = created_on
        self.last_drift_on = 0
        self.n_drifts_detected = 0
        self.subspace_size = subspace_size
        self.subspace_range = subspace_range
        self.rng = random.Random()

        self._model_factory = model_factory
        self._drift_detector_template = drift_detector
        self.disable_drift_detector = drift_detector is None or isinstance(drift_detector, NoDrift)
        self.drift_detector = None if self.disable_drift_detector else drift_detector.clone()

        self.window = AccuracyWindow(window_size)
        self.model = model_factory(subspace_size, self.rng)

    @property
    def accuracy(self) -> float | None:
        return self.window.accuracy

    def set_seed(self, seed):
        self.rng.seed(seed)

    def learn_one(self, x: dict, y: base.typing.ClfTarget, *, w: float, n_samples_seen: int):
        self.model.learn_one(x, y, w=w)

        if self.disable_drift_detector:
            return

        # The detector watches the error: 0 when correct, 1 when wrong
        drift_input = int(not self.model.correctly_classifies(x, y))
        self.drift_detector.update(drift_input)
        if self.drift_detector.drift_detected:
            self.last_drift_on = n_samples_seen
            self.n_drifts_detected += 1
            logger.info(
                "Drift detected on tree %d at instance %d (drifts so far: %d)",
                self.idx_original, n_samples_seen, self.n_drifts_detected,
            )
            self.reset(n_samples_seen)

    def reset(self, n_samples_seen: int):
        low, high = self.subspace_range
        self.subspace_size = self.rng.randint(low, high)
        self.model = self._model_factory(self.subspace_size, self.rng)
        if not self.disable_drift_detector:
            self.drift_detector = self._drift_detector_template.clone()
        self.window.reset()
        self.created_on = n_samples_seen

    def predict_proba_one(self, x: dict) -> dict[base.typing.ClfTarget, float]:
        return self.model.predict_proba_one(x)

    def update_window(self, y: base.typing.ClfTarget, votes: dict):
        self.window.update(utils.max_index(votes) == y)

    def __repr__(self):
        return (
            f"ARTEBaseLearner(idx={self.idx_original}, subspace_size={self.subspace_size}, "
            f"drifts={self.n_drifts_detected}, {self.window!r})"
        )
