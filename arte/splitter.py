"""Attribute splitters and the split tests built from their suggestions.

Leaves monitor their features with river splitters. Numeric features use
`RandomGaussianSplitter`, a `GaussianSplitter` that evaluates a single random cut
point per split attempt instead of a grid of candidates. Nominal features use
river's `NominalSplitterClassif`.

A winning `BranchFactory` is turned into a split test with `split_test_from`. The
tests only route instances; the tree stores the children.

"""
from __future__ import annotations

import random
import typing

from river import base
from river.tree.splitter import GaussianSplitter
from river.tree.utils import BranchFactory


# ================================================================
# Split tests
# ================================================================

class NumericBinaryTest:
    """Binary test `x[feature] <= threshold`. Branch 0 holds the values up to the threshold."""

    def __init__(self, feature: base.typing.FeatureName, threshold: float):
        self.feature = feature
        self.threshold = threshold

    @property
    def branches(self) -> list:
        return [0, 1]

    def branch_for(self, x: dict) -> int | None:
        value = x.get(self.feature)
        if value is None:
            return None
        return 0 if value <= self.threshold else 1

    def describe(self, branch) -> str:
        op = "<=" if branch == 0 else ">"
        return f"{self.feature} {op} {self.threshold:.4f}"

    def __repr__(self):
        return f"NumericBinaryTest({self.feature!r} <= {self.threshold})"


class NominalBinaryTest:
    """Binary test `x[feature] == value`. Branch 0 holds the matching value."""

    def __init__(self, feature: base.typing.FeatureName, value):
        self.feature = feature
        self.value = value

    @property
    def branches(self) -> list:
        return [0, 1]

    def branch_for(self, x: dict) -> int | None:
        value = x.get(self.feature)
        if value is None:
            return None
        return 0 if value == self.value else 1

    def describe(self, branch) -> str:
        op = "=" if branch == 0 else "!="
        return f"{self.feature} {op} {self.value}"

    def __repr__(self):
        return f"NominalBinaryTest({self.feature!r} == {self.value!r})"


class NominalMultiwayTest:
    """One branch per nominal value. The branch key is the value itself, so values
    that were never observed at split time route to a branch with no child yet."""

    def __init__(self, feature: base.typing.FeatureName, values: typing.Iterable):
        self.feature = feature
        self.values = tuple(values)

    @property
    def branches(self) -> list:
        return list(self.values)

    def branch_for(self, x: dict):
        return x.get(self.feature)

    def describe(self, branch) -> str:
        return f"{self.feature} = {branch}"

    def __repr__(self):
        return f"NominalMultiwayTest({self.feature!r}, {len(self.values)} values)"


SplitTest = typing.Union[NumericBinaryTest, NominalBinaryTest, NominalMultiwayTest]


def split_test_from(suggestion: BranchFactory) -> SplitTest | None:
    """Routing test of a split suggestion, `None` for the null split.

    The branches of the test follow the order of `suggestion.children_stats`.
    """
    if suggestion.feature is None:
        return None
    if suggestion.numerical_feature:
        return NumericBinaryTest(suggestion.feature, suggestion.split_info)
    if suggestion.multiway_split:
        return NominalMultiwayTest(suggestion.feature, suggestion.split_info)
    return NominalBinaryTest(suggestion.feature, suggestion.split_info)


def sort_suggestions(suggestions: list[BranchFactory]) -> list[BranchFactory]:
    # sorted is stable: ties keep the order in which suggestions were evaluated
    return sorted(suggestions, key=lambda s: s.merit)


# ================================================================
# Numeric splitter
# ================================================================

class RandomGaussianSplitter(GaussianSplitter):
    """Gaussian splitter with a randomized split point.

    Class statistics are those of `GaussianSplitter`: one Gaussian estimator per
    class along with the smallest and largest value observed for that class. On
    each split attempt a single threshold is drawn uniformly between the
    smallest and the largest value observed over all classes, and kept only when
    it lies strictly inside that range.

    Parameters
    ----------
    rng
        Random number generator used to draw the threshold. Trees hand in the
        generator of the ensemble member that owns them.

    """

    def __init__(self, rng: random.Random | None = None):
        super().__init__(n_splits=1)
        self.rng = rng if rng is not None else random.Random()

    def _split_point_suggestions(self):
        if not self._att_dist_per_class:
            return []

        min_value = min(self._min_per_class.values())
        max_value = max(self._max_per_class.values())
        split_value = min_value + self.rng.random() * (max_value - min_value)
        if min_value < split_value < max_value:
            return [split_value]
        return []
