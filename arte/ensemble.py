from __future__ import annotations

import collections
import functools
import logging
import random
import typing

import numpy as np
from river import base
from river.drift import ADWIN, NoDrift
from river.utils.random import poisson

from . import utils
from .member import ARTEBaseLearner
from .nodes import NAIVE_BAYES_ADAPTIVE
from .scheduling import make_scheduler
from .tree import ARTEHoeffdingTree

logger = logging.getLogger(__name__)

# Absorbs the rounding of the mean when every member has the same accuracy
_THRESHOLD_TOLERANCE = 1e-12


class ARTEClassifier(base.Ensemble, base.Classifier):
    """Adaptive Random Tree Ensemble classifier.

    An online bagging ensemble of `ARTEHoeffdingTree`. Every member receives each
    instance with a Poisson(`lambda_value`) weight, monitors a random feature
    subspace whose size is drawn from `[min_subspace_size, n_features]`, and is
    reset in place when its drift detector fires. Members are trained in a
    thread pool when `n_jobs` allows it.

    Only the members whose accuracy over the last `window_size` instances is at
    least the average windowed accuracy of the ensemble take part in the vote. The
    average is the one computed at the previous scoring round, so the gate lags
    one instance behind.

    Parameters
    ----------
    n_models
        Number of trees in the ensemble.
    lambda_value
        Rate of the Poisson distribution used for online bagging.
    n_jobs
        Number of training threads. `0` or `1` trains the members in the calling
        thread, `-1` uses one thread per CPU.
    drift_detector
        Drift detector cloned for every member. Defaults to `ADWIN(delta=0.001)`.
    disable_drift_detection
        If True, members are never reset.
    window_size
        Size of the accuracy window of each member.
    min_subspace_size
        Lower bound of the random subspace size of each member.
    window_update
        When the accuracy windows are fed. `'learn'` scores every member against
        the label at the start of `learn_one`, before training. `'predict'` only
        scores members when `votes_for_instance` is called with a label, which
        couples prediction with the online evaluation. `predict_proba_one` and
        `predict_one` carry no label, so in that mode the windows stay empty and
        nothing votes unless the caller scores through `votes_for_instance(x, y)`.
    penalize_variance
        If True, the voting threshold is the average windowed accuracy minus one
        standard deviation.
    grace_period, delta, tau, split_criterion, leaf_prediction, nb_threshold,
    nominal_attributes, binary_split, merit_preprune, max_depth
        Parameters of the trees, see `ARTEHoeffdingTree`.
    seed
        Random seed for reproducibility.

    With `n_jobs` above 1 the members train in a thread pool that is started on
    the first `learn_one`. Call `close` once the model is no longer trained to
    shut the pool down; a model that is garbage collected without `close` stops
    its pool without waiting for it.

    """

    _WINDOW_ON_LEARN = "learn"
    _WINDOW_ON_PREDICT = "predict"
    _VALID_WINDOW_UPDATES = (_WINDOW_ON_LEARN, _WINDOW_ON_PREDICT)

    def __init__(
        self,
        n_models: int = 100,
        lambda_value: float = 6.0,
        n_jobs: int = 1,
        drift_detector: base.DriftDetector | None = None,
        disable_drift_detection: bool = False,
        window_size: int = 400,
        min_subspace_size: int = 2,
        window_update: str = "learn",
        penalize_variance: bool = False,
        # Tree parameters
        grace_period: int = 100,
        delta: float = 0.01,
        tau: float = 0.05,
        split_criterion: str = "info_gain",
        leaf_prediction: str = NAIVE_BAYES_ADAPTIVE,
        nb_threshold: int = 0,
        nominal_attributes: list | None = None,
        binary_split: bool = False,
        merit_preprune: bool = True,
        max_depth: int | None = None,
        seed: int | None = None,
    ):
        super().__init__([])  # type: ignore

        if n_models < 1:
            raise ValueError(f"n_models must be at least 1, got {n_models}")
        if lambda_value <= 0:
            raise ValueError(f"lambda_value must be positive, got {lambda_value}")
        if window_size < 1:
            raise ValueError(f"window_size must be at least 1, got {window_size}")
        if min_subspace_size < 1:
            raise ValueError(f"min_subspace_size must be at least 1, got {min_subspace_size}")
        if window_update not in self._VALID_WINDOW_UPDATES:
            raise ValueError(
                f"Invalid window_update: {window_update}. "
                f"Valid options are: {self._VALID_WINDOW_UPDATES}"
            )

        self.n_models = n_models
        self.lambda_value = lambda_value
        self.n_jobs = n_jobs
        self.drift_detector = drift_detector if drift_detector is not None else ADWIN(delta=0.001)
        self.disable_drift_detection = disable_drift_detection
        self.window_size = window_size
        self.min_subspace_size = min_subspace_size
        self.window_update = window_update
        self.penalize_variance = penalize_variance
        self.grace_period = grace_period
        self.delta = delta
        self.tau = tau
        self.split_criterion = split_criterion
        self.leaf_prediction = leaf_prediction
        self.nb_threshold = nb_threshold
        self.nominal_attributes = nominal_attributes
        self.binary_split = binary_split
        self.merit_preprune = merit_preprune
        self.max_depth = max_depth
        self.seed = seed

        if window_update == self._WINDOW_ON_PREDICT:
            logger.warning(
                "window_update='predict' only scores members through "
                "votes_for_instance(x, y); predict_proba_one gives no label, so "
                "the vote stays empty unless the caller passes one"
            )

        # Fail fast on invalid tree parameters instead of at the first instance
        self._new_base_model(min_subspace_size, random.Random())

        self._scheduler = make_scheduler(n_jobs)
        self._rng = random.Random(self.seed)
        self._seed_base = self.seed if self.seed is not None else self._rng.getrandbits(64)
        self._n_samples_seen = 0
        self._accuracy_threshold = 0.0

    @property
    def _min_number_of_models(self):
        return 0

    @property
    def _multiclass(self):
        return True

    @property
    def n_samples_seen(self) -> int:
        return self._n_samples_seen

    @property
    def accuracy_threshold(self) -> float:
        """Windowed accuracy a member needs to take part in the next vote."""
        return self._accuracy_threshold

    def n_drifts_detected(self, tree_id: int | None = None) -> int:
        if tree_id is None:
            return sum(member.n_drifts_detected for member in self)
        return self[tree_id].n_drifts_detected

    def _new_base_model(self, subspace_size: int, rng: random.Random) -> ARTEHoeffdingTree:
        return ARTEHoeffdingTree(
            grace_period=self.grace_period,
            delta=self.delta,
            tau=self.tau,
            split_criterion=self.split_criterion,
            leaf_prediction=self.leaf_prediction,
            nb_threshold=self.nb_threshold,
            nominal_attributes=self.nominal_attributes,
            subspace_size=subspace_size,
            binary_split=self.binary_split,
            merit_preprune=self.merit_preprune,
            max_depth=self.max_depth,
            rng=rng,
        )

    def _init_ensemble(self, features: list):
        n_features = max(1, len(features))
        low = min(self.min_subspace_size, n_features)
        drift_detector = None if self.disable_drift_detection else self.drift_detector

        self.data = [
            ARTEBaseLearner(
                idx_original=i,
                model_factory=self._new_base_model,
                subspace_size=self._rng.randint(low, n_features),
                subspace_range=(low, n_features),
                drift_detector=drift_detector,
                window_size=self.window_size,
                created_on=self._n_samples_seen,
            )
            for i in range(self.n_models)
        ]
        logger.debug(
            "Initialized %d members over %d features (subspace sizes %s)",
            self.n_models, n_features, [m.subspace_size for m in self],
        )

    def _member_seed(self, tree_id: int) -> str:
        # String seeds are hashed with SHA-512 by random.Random, so the stream of
        # each member is reproducible across processes
        return f"{self._seed_base}:{self._n_samples_seen}:{tree_id}"

    # ---------------- learning ----------------

    def learn_one(self, x: dict, y: base.typing.ClfTarget, *, w: float = 1.0):
        self._n_samples_seen += 1
        if not self.data:
            self._init_ensemble(list(x.keys()))

        if self.window_update == self._WINDOW_ON_LEARN:
            for member in self:
                member.update_window(y, member.predict_proba_one(x))
            self._update_accuracy_threshold()

        # The shared generator is only touched here, in the calling thread
        weights = []
        for i, member in enumerate(self):
            member.set_seed(self._member_seed(i))
            weights.append(poisson(rate=self.lambda_value, rng=self._rng))

        self._train_members(x, y, [w * k for k in weights])
        return self

    def _train_members(self, x: dict, y, weights: list[float]):
        tasks = [
            functools.partial(member.learn_one, x, y, w=k, n_samples_seen=self._n_samples_seen)
            for member, k in zip(self, weights)
            if k > 0
        ]
        self._scheduler.run(tasks)

    def _update_accuracy_threshold(self):
        accuracies = [member.accuracy for member in self if member.accuracy is not None]
        if not accuracies:
            return
        accuracies = np.asarray(accuracies, dtype=float)
        threshold = accuracies.mean()
        if self.penalize_variance:
            threshold -= accuracies.std()
        self._accuracy_threshold = float(threshold)

    def _is_eligible(self, member: ARTEBaseLearner) -> bool:
        accuracy = member.accuracy
        if accuracy is None:
            return False
        return accuracy >= self._accuracy_threshold - _THRESHOLD_TOLERANCE

    # ---------------- prediction ----------------

    def votes_for_instance(self, x: dict, y: base.typing.ClfTarget | None = None) -> dict:
        """Combined vote of the eligible members.

        Each eligible member contributes its normalized class distribution; the
        sum is returned without normalization. When `y` is given and
        `window_update='predict'`, the members are scored against `y` and the
        voting threshold is recomputed after the votes are combined.

        """
        if not self.data:
            self._init_ensemble(list(x.keys()))

        score = y is not None and self.window_update == self._WINDOW_ON_PREDICT
        combined: typing.Counter = collections.Counter()

        for member in self:
            votes = member.predict_proba_one(x)
            eligible = self._is_eligible(member)
            if score:
                member.update_window(y, votes)

            total = sum(votes.values())
            if eligible and total > 0:
                for label, vote in votes.items():
                    combined[label] += vote / total

        if score:
            self._update_accuracy_threshold()

        return dict(combined)

    def predict_proba_one(self, x: dict, **kwargs) -> dict[base.typing.ClfTarget, float]:
        return utils.normalize(self.votes_for_instance(x))

    def close(self):
        """Shut down the training threads, if any."""
        self._scheduler.close()
