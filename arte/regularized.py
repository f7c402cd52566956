from __future__ import annotations

import collections

from river import base
from river.utils.random import poisson

from . import utils
from .ensemble import ARTEClassifier


class AREClassifier(ARTEClassifier):
    """Adaptive regularized ensemble.

    A variant of `ARTEClassifier` meant for noisy streams. Each member is scored
    against the label before training and only trains on the instances it gets
    wrong, plus one out of every `hits_before_training` instances it gets right
    (counted per class). The voting threshold is the average windowed accuracy
    minus one standard deviation, which lets more members vote when the ensemble
    disagrees.

    Parameters
    ----------
    hits_before_training
        Number of correct predictions on a class after which a member trains on
        the instance anyway.
    The other parameters are those of `ARTEClassifier`; `window_update` is always
    `'learn'`.

    """

    def __init__(
        self,
        n_models: int = 100,
        lambda_value: float = 6.0,
        n_jobs: int = 1,
        hits_before_training: int = 5,
        drift_detector: base.DriftDetector | None = None,
        disable_drift_detection: bool = False,
        window_size: int = 500,
        min_subspace_size: int = 2,
        penalize_variance: bool = True,
        grace_period: int = 100,
        delta: float = 0.01,
        tau: float = 0.05,
        split_criterion: str = "info_gain",
        leaf_prediction: str = "nba",
        nb_threshold: int = 0,
        nominal_attributes: list | None = None,
        binary_split: bool = False,
        merit_preprune: bool = True,
        max_depth: int | None = None,
        seed: int | None = None,
    ):
        if hits_before_training < 1:
            raise ValueError(f"hits_before_training must be at least 1, got {hits_before_training}")
        super().__init__(
            n_models=n_models,
            lambda_value=lambda_value,
            n_jobs=n_jobs,
            drift_detector=drift_detector,
            disable_drift_detection=disable_drift_detection,
            window_size=window_size,
            min_subspace_size=min_subspace_size,
            window_update=self._WINDOW_ON_LEARN,
            penalize_variance=penalize_variance,
            grace_period=grace_period,
            delta=delta,
            tau=tau,
            split_criterion=split_criterion,
            leaf_prediction=leaf_prediction,
            nb_threshold=nb_threshold,
            nominal_attributes=nominal_attributes,
            binary_split=binary_split,
            merit_preprune=merit_preprune,
            max_depth=max_depth,
            seed=seed,
        )
        self.hits_before_training = hits_before_training
        self._hits: list[collections.Counter] = []

    def _init_ensemble(self, features: list):
        super()._init_ensemble(features)
        self._hits = [collections.Counter() for _ in range(self.n_models)]

    def learn_one(self, x: dict, y: base.typing.ClfTarget, *, w: float = 1.0):
        self._n_samples_seen += 1
        if not self.data:
            self._init_ensemble(list(x.keys()))

        weights = []
        for i, member in enumerate(self):
            member.set_seed(self._member_seed(i))
            correct = utils.max_index(member.predict_proba_one(x)) == y

            will_train = not correct
            if correct:
                self._hits[i][y] += 1
                if self._hits[i][y] >= self.hits_before_training:
                    self._hits[i][y] = 0
                    will_train = True

            member.window.update(correct)
            weights.append(poisson(rate=self.lambda_value, rng=self._rng) if will_train else 0)

        self._update_accuracy_threshold()
        self._train_members(x, y, [w * k for k in weights])
        return self
