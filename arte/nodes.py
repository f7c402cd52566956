from __future__ import annotations

import numbers
import typing

from river.tree.splitter.nominal_splitter_classif import NominalSplitterClassif
from river.tree.utils import BranchFactory, do_naive_bayes_prediction

from . import utils
from .splitter import RandomGaussianSplitter

if typing.TYPE_CHECKING:
    from .tree import ARTEHoeffdingTree


MAJORITY_CLASS = "mc"
NAIVE_BAYES = "nb"
NAIVE_BAYES_ADAPTIVE = "nba"

LEAF_PREDICTIONS = (MAJORITY_CLASS, NAIVE_BAYES, NAIVE_BAYES_ADAPTIVE)


class LearningNode:
    """Tree leaf that accumulates the statistics used to decide a split.

    The leaf only monitors a random subset of the features. The subset is drawn
    the first time the leaf learns from an instance and stays fixed for the
    lifetime of the leaf.

    Parameters
    ----------
    stats
        Initial class distribution, e.g. the branch distribution of the split
        that created the leaf.
    depth
        Depth of the leaf in the tree.
    subspace_size
        Number of features monitored by the leaf.
    prediction
        Leaf prediction strategy: `"mc"`, `"nb"` or `"nba"`.

    """

    def __init__(self, stats: dict | None, depth: int, subspace_size: int, prediction: str):
        self.stats: utils.ClassDistribution = dict(stats) if stats else {}
        self.depth = depth
        self.subspace_size = subspace_size
        self.prediction = prediction

        self.splitters: dict = {}
        self.features: list | None = None
        self.active = True
        self.last_split_attempt_at = self.total_weight

        # Naive Bayes adaptive bookkeeping
        self._mc_correct_weight = 0.0
        self._nb_correct_weight = 0.0

    @property
    def total_weight(self) -> float:
        return utils.total_weight(self.stats)

    def deactivate(self):
        self.active = False
        self.splitters = {}

    def _draw_features(self, x: dict, rng):
        candidates = sorted(x, key=str)
        k = self.subspace_size
        if k < 0:
            k += len(candidates)
        k = max(1, min(k, len(candidates)))
        self.features = rng.sample(candidates, k)

    def _new_splitter(self, value, feature, tree: ARTEHoeffdingTree):
        if feature in tree._nominal_attributes or not isinstance(value, numbers.Number):
            return NominalSplitterClassif()
        return RandomGaussianSplitter(rng=tree.rng)

    def _naive_bayes(self, x: dict) -> utils.ClassDistribution:
        # Missing values carry no likelihood
        x = {feature: value for feature, value in x.items() if value is not None}
        return do_naive_bayes_prediction(x, self.stats, self.splitters) or {}

    def learn_one(self, x: dict, y, w: float, tree: ARTEHoeffdingTree):
        if not self.active:
            utils.add(self.stats, y, w)
            return

        if self.prediction == NAIVE_BAYES_ADAPTIVE:
            if utils.max_index(self.stats) == y:
                self._mc_correct_weight += w
            nb_pred = self._naive_bayes(x)
            if nb_pred and utils.max_index(nb_pred) == y:
                self._nb_correct_weight += w

        utils.add(self.stats, y, w)

        if self.features is None:
            if not x:
                return
            self._draw_features(x, tree.rng)

        for feature in self.features:
            value = x.get(feature)
            if value is None:
                continue
            try:
                splitter = self.splitters[feature]
            except KeyError:
                splitter = self.splitters[feature] = self._new_splitter(value, feature, tree)
            splitter.update(value, y, w)

    def prediction_for(self, x: dict, tree: ARTEHoeffdingTree) -> utils.ClassDistribution:
        if not self.active or self.prediction == MAJORITY_CLASS:
            return dict(self.stats)

        if self.prediction == NAIVE_BAYES:
            if self.total_weight >= tree.nb_threshold:
                return self._naive_bayes(x)
            return dict(self.stats)

        if self._mc_correct_weight > self._nb_correct_weight:
            return dict(self.stats)
        return self._naive_bayes(x)

    def best_split_suggestions(self, criterion, tree: ARTEHoeffdingTree) -> list[BranchFactory]:
        suggestions = []
        pre_split_dist = dict(self.stats)
        if tree.merit_preprune:
            # Null split: keep the leaf as is
            null_split = BranchFactory(merit=criterion.merit_of_split(pre_split_dist, [pre_split_dist]))
            suggestions.append(null_split)

        for feature, splitter in self.splitters.items():
            best = splitter.best_evaluated_split_suggestion(
                criterion, pre_split_dist, feature, tree.binary_split
            )
            # Splitters without a candidate return an empty factory
            if best.feature is not None:
                suggestions.append(best)

        return suggestions

    def __repr__(self):
        state = "active" if self.active else "inactive"
        return f"LearningNode({state}, depth={self.depth}, weight={self.total_weight:.1f})"


class SplitNode:
    """Decision node. `children` maps a branch of the split test to a node id in the
    tree's arena. A branch without an entry has no child yet."""

    def __init__(self, split_test, stats: dict, depth: int):
        self.split_test = split_test
        self.stats: utils.ClassDistribution = dict(stats)
        self.depth = depth
        self.children: dict = {}

    def branch_for(self, x: dict):
        return self.split_test.branch_for(x)

    def __repr__(self):
        return f"SplitNode({self.split_test!r}, depth={self.depth}, children={len(self.children)})"
