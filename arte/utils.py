from __future__ import annotations

import math
import typing

from river import base
from river.utils.norm import normalize_values_in_dict

# Class distributions are plain dicts mapping a class label to accumulated weight.
ClassDistribution = typing.Dict[base.typing.ClfTarget, float]


def add(dist: ClassDistribution, label, weight: float = 1.0) -> ClassDistribution:
    dist[label] = dist.get(label, 0.0) + weight
    return dist


def total_weight(dist: ClassDistribution) -> float:
    return sum(dist.values())


def max_index(dist: ClassDistribution):
    """Return the label with the largest weight, or `None` for an empty distribution."""
    if not dist:
        return None
    return max(dist, key=dist.get)


def is_pure(dist: ClassDistribution) -> bool:
    return sum(1 for weight in dist.values() if weight > 0) < 2


def normalize(dist: ClassDistribution) -> ClassDistribution:
    if total_weight(dist) <= 0:
        return {}
    return normalize_values_in_dict(dist, inplace=False)


def hoeffding_bound(range_val: float, confidence: float, n: float) -> float:
    r"""Compute the Hoeffding bound.

    With probability `1 - confidence`, the true mean of a random variable with
    range `range_val` lies within `epsilon` of the mean observed over `n`
    independent observations.

    $$
    \epsilon = \sqrt{\frac{R^2\ln(1/\delta)}{2n}}
    $$

    Parameters
    ----------
    range_val
        Range of the random variable (here, the range of the split merit).
    confidence
        Allowed error `delta`.
    n
        Weight of the observations seen.

    """
    return math.sqrt((range_val * range_val * math.log(1.0 / confidence)) / (2.0 * n))
