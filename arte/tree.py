from __future__ import annotations

import logging
import random
import typing

from river import base
from river.tree.split_criterion import (
    GiniSplitCriterion,
    HellingerDistanceCriterion,
    InfoGainSplitCriterion,
)

from . import utils
from .nodes import LEAF_PREDICTIONS, NAIVE_BAYES_ADAPTIVE, LearningNode, SplitNode
from .splitter import sort_suggestions, split_test_from

logger = logging.getLogger(__name__)


class ARTEHoeffdingTree(base.Classifier):
    """Hoeffding tree with random feature subspaces and random numeric cut points.

    This is the base learner of `ARTEClassifier`. Each leaf monitors a random
    subset of `subspace_size` features, drawn the first time the leaf learns.
    Numeric features are evaluated at a single threshold drawn uniformly between
    the smallest and largest observed values, which makes every split attempt
    O(1) per feature. Nominal multiway splits keep each branch with probability
    0.5; the dropped branches are grown back from scratch when an instance
    reaches them.

    Nodes are stored in an arena addressed by integer ids. Decision nodes hold the
    ids of their children and a split replaces a leaf by updating the child slot of
    its parent (or the root id), so nodes never point back to their parent.

    Parameters
    ----------
    grace_period
        Weight a leaf should observe between split attempts.
    delta
        Split confidence. Allowed error in the split decision, a value closer to 0
        takes longer to decide.
    tau
        Threshold below which a split will be forced to break ties.
    split_criterion
        `'info_gain'`, `'gini'` or `'hellinger'`.
    leaf_prediction
        `'mc'` (majority class), `'nb'` (naive Bayes) or `'nba'` (naive Bayes
        adaptive).
    nb_threshold
        Weight a leaf should observe before allowing naive Bayes.
    nominal_attributes
        Features to treat as nominal. Non numeric values are always treated as
        nominal.
    subspace_size
        Number of features monitored by each leaf. Negative values mean
        `n_features + subspace_size`.
    binary_split
        If True, nominal features only produce binary splits.
    merit_preprune
        If True, the "do not split" option competes with the real splits.
    max_depth
        Leaves at this depth stop growing. `None` lets the tree grow indefinitely.
    min_branch_fraction
        Minimum fraction of the weight that a branch must hold for the split
        criterion to consider the split.
    rng
        Random number generator used for the feature subspaces, the numeric cut
        points and the multiway branch sampling.

    """

    _INFO_GAIN = "info_gain"
    _GINI = "gini"
    _HELLINGER = "hellinger"
    _VALID_SPLIT_CRITERIA = (_INFO_GAIN, _GINI, _HELLINGER)

    def __init__(
        self,
        grace_period: int = 100,
        delta: float = 0.01,
        tau: float = 0.05,
        split_criterion: str = "info_gain",
        leaf_prediction: str = NAIVE_BAYES_ADAPTIVE,
        nb_threshold: int = 0,
        nominal_attributes: list | None = None,
        subspace_size: int = 2,
        binary_split: bool = False,
        merit_preprune: bool = True,
        max_depth: int | None = None,
        min_branch_fraction: float = 0.01,
        rng: random.Random | None = None,
    ):
        if grace_period <= 0:
            raise ValueError(f"grace_period must be positive, got {grace_period}")
        if not 0.0 < delta < 1.0:
            raise ValueError(f"delta must be in (0, 1), got {delta}")
        if tau < 0:
            raise ValueError(f"tau must be non-negative, got {tau}")
        if split_criterion not in self._VALID_SPLIT_CRITERIA:
            raise ValueError(
                f"Invalid split_criterion: {split_criterion}. "
                f"Valid options are: {self._VALID_SPLIT_CRITERIA}"
            )
        if leaf_prediction not in LEAF_PREDICTIONS:
            raise ValueError(
                f"Invalid leaf_prediction: {leaf_prediction}. "
                f"Valid options are: {LEAF_PREDICTIONS}"
            )
        if subspace_size == 0:
            raise ValueError("subspace_size must be non-zero")
        if max_depth is not None and max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {max_depth}")

        self.grace_period = grace_period
        self.delta = delta
        self.tau = tau
        self.split_criterion = split_criterion
        self.leaf_prediction = leaf_prediction
        self.nb_threshold = nb_threshold
        self.nominal_attributes = nominal_attributes
        self.subspace_size = subspace_size
        self.binary_split = binary_split
        self.merit_preprune = merit_preprune
        self.max_depth = max_depth
        self.min_branch_fraction = min_branch_fraction
        self.rng = rng if rng is not None else random.Random()

        self._nominal_attributes = set(nominal_attributes or [])
        self._criterion = self._new_split_criterion()
        self.reset()

    @property
    def _multiclass(self):
        return True

    def reset(self):
        self._nodes: list[LearningNode | SplitNode | None] = []
        self._free: list[int] = []
        self._root = self._add_node(self._new_leaf())
        self._train_weight_seen_by_model = 0.0
        self.growth_allowed = True
        return self

    def _new_split_criterion(self):
        if self.split_criterion == self._GINI:
            return GiniSplitCriterion(self.min_branch_fraction)
        if self.split_criterion == self._HELLINGER:
            return HellingerDistanceCriterion(self.min_branch_fraction)
        return InfoGainSplitCriterion(self.min_branch_fraction)

    def _new_leaf(self, stats: dict | None = None, depth: int = 0) -> LearningNode:
        return LearningNode(stats, depth, self.subspace_size, self.leaf_prediction)

    # ---------------- arena ----------------

    def _add_node(self, node) -> int:
        if self._free:
            node_id = self._free.pop()
            self._nodes[node_id] = node
        else:
            node_id = len(self._nodes)
            self._nodes.append(node)
        return node_id

    def _release(self, node_id: int):
        self._nodes[node_id] = None
        self._free.append(node_id)

    def _replace(self, parent_id: int | None, branch, node_id: int):
        if parent_id is None:
            self._root = node_id
        else:
            self._nodes[parent_id].children[branch] = node_id

    def _filter_to_leaf(self, x: dict) -> tuple[int | None, int | None, typing.Any]:
        """Route `x` down the tree.

        Returns `(node_id, parent_id, branch)`. `node_id` is `None` when routing
        reaches a branch without a child; in that case `parent_id` and `branch`
        locate the empty slot. Routing stops at a decision node when `x` lacks the
        feature the node tests.

        """
        parent_id, branch = None, None
        node_id = self._root
        while node_id is not None:
            node = self._nodes[node_id]
            if isinstance(node, LearningNode):
                break
            next_branch = node.branch_for(x)
            if next_branch is None:
                break
            parent_id, branch = node_id, next_branch
            node_id = node.children.get(next_branch)
        return node_id, parent_id, branch

    # ---------------- learning ----------------

    def learn_one(self, x: dict, y: base.typing.ClfTarget, *, w: float = 1.0):
        self._train_weight_seen_by_model += w

        node_id, parent_id, branch = self._filter_to_leaf(x)
        if node_id is None:
            parent = self._nodes[parent_id]
            node_id = self._add_node(self._new_leaf(depth=parent.depth + 1))
            parent.children[branch] = node_id

        leaf = self._nodes[node_id]
        if not isinstance(leaf, LearningNode):
            return

        leaf.learn_one(x, y, w, self)

        if self.growth_allowed and leaf.active:
            weight_seen = leaf.total_weight
            if weight_seen - leaf.last_split_attempt_at >= self.grace_period:
                if self.max_depth is not None and leaf.depth >= self.max_depth:
                    leaf.deactivate()
                else:
                    self._attempt_to_split(node_id, parent_id, branch)
                leaf.last_split_attempt_at = weight_seen

    def _attempt_to_split(self, leaf_id: int, parent_id: int | None, parent_branch):
        leaf = self._nodes[leaf_id]
        if utils.is_pure(leaf.stats):
            return

        criterion = self._criterion
        suggestions = sort_suggestions(leaf.best_split_suggestions(criterion, self))

        should_split = False
        if len(suggestions) < 2:
            should_split = len(suggestions) > 0
        else:
            bound = utils.hoeffding_bound(
                criterion.range_of_merit(leaf.stats), self.delta, leaf.total_weight
            )
            best, second = suggestions[-1], suggestions[-2]
            if best.merit - second.merit > bound or bound < self.tau:
                should_split = True

        if not should_split:
            return

        decision = suggestions[-1]
        split_test = split_test_from(decision)
        if split_test is None:
            # Pre-pruning: not splitting is the best option
            leaf.deactivate()
            logger.debug("Deactivated leaf %d at depth %d", leaf_id, leaf.depth)
            return

        new_split = SplitNode(split_test, leaf.stats, leaf.depth)
        for branch, stats in zip(split_test.branches, decision.children_stats):
            if decision.multiway_split and self.rng.random() > 0.5:
                continue
            new_split.children[branch] = self._add_node(self._new_leaf(stats, leaf.depth + 1))

        self._release(leaf_id)
        split_id = self._add_node(new_split)
        self._replace(parent_id, parent_branch, split_id)
        logger.debug(
            "Split leaf %d on %r (merit=%.4f, weight=%.1f)",
            leaf_id, split_test, decision.merit, leaf.total_weight,
        )

    # ---------------- prediction ----------------

    def predict_proba_one(self, x: dict) -> dict[base.typing.ClfTarget, float]:
        node_id, parent_id, _ = self._filter_to_leaf(x)
        node = self._nodes[node_id if node_id is not None else parent_id]
        if isinstance(node, LearningNode):
            return utils.normalize(node.prediction_for(x, self))
        return utils.normalize(node.stats)

    def correctly_classifies(self, x: dict, y: base.typing.ClfTarget) -> bool:
        return self.predict_one(x) == y

    # ---------------- introspection ----------------

    def _iter_nodes(self):
        return (node for node in self._nodes if node is not None)

    @property
    def root(self) -> LearningNode | SplitNode:
        return self._nodes[self._root]

    @property
    def n_nodes(self) -> int:
        return sum(1 for _ in self._iter_nodes())

    @property
    def n_branches(self) -> int:
        return sum(1 for node in self._iter_nodes() if isinstance(node, SplitNode))

    @property
    def n_leaves(self) -> int:
        return sum(1 for node in self._iter_nodes() if isinstance(node, LearningNode))

    @property
    def n_active_leaves(self) -> int:
        return sum(
            1 for node in self._iter_nodes() if isinstance(node, LearningNode) and node.active
        )

    @property
    def n_inactive_leaves(self) -> int:
        return self.n_leaves - self.n_active_leaves

    @property
    def height(self) -> int:
        return max(node.depth for node in self._iter_nodes()) + 1

    @property
    def total_weight_observed(self) -> float:
        return self._train_weight_seen_by_model

    @property
    def summary(self) -> dict:
        return {
            "n_nodes": self.n_nodes,
            "n_branches": self.n_branches,
            "n_leaves": self.n_leaves,
            "n_active_leaves": self.n_active_leaves,
            "n_inactive_leaves": self.n_inactive_leaves,
            "height": self.height,
            "total_observed_weight": self.total_weight_observed,
        }
