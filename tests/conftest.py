"""Shared fixtures: small synthetic streams with a known decision boundary."""

import random

import pytest


def _linear_stream(n, seed=0, flip_at=None, gap=0.1):
    """Two numeric features, the label is `x0 > 0.5`. Values of x0 within `gap` of
    the boundary are not generated. After `flip_at` instances the labels are
    inverted."""
    rng = random.Random(seed)
    stream = []
    for i in range(n):
        x0 = rng.random()
        while abs(x0 - 0.5) < gap / 2:
            x0 = rng.random()
        x = {"x0": x0, "x1": rng.random()}
        y = int(x0 > 0.5)
        if flip_at is not None and i >= flip_at:
            y = 1 - y
        stream.append((x, y))
    return stream


@pytest.fixture
def linear_stream():
    return _linear_stream


@pytest.fixture
def always_one(monkeypatch):
    """Poisson weights always equal to 1."""
    monkeypatch.setattr("arte.ensemble.poisson", lambda rate, rng: 1)
    monkeypatch.setattr("arte.regularized.poisson", lambda rate, rng: 1)
