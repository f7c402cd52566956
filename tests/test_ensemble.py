"""Tests for the ARTE ensemble."""

import logging

import pytest
from river.drift import ADWIN

from arte import ARTEBaseLearner, ARTEClassifier, utils


def _train(model, stream):
    for x, y in stream:
        model.learn_one(x, y)
    return model


class TestConfiguration:
    """Tests for parameter validation and lazy initialization."""

    @pytest.mark.parametrize(
        "params",
        [
            {"n_models": 0},
            {"lambda_value": 0.0},
            {"window_size": 0},
            {"min_subspace_size": 0},
            {"window_update": "always"},
            {"n_jobs": -2},
            {"grace_period": 0},
            {"split_criterion": "entropy"},
            {"leaf_prediction": "knn"},
        ],
    )
    def test_invalid_parameters(self, params) -> None:
        with pytest.raises(ValueError):
            ARTEClassifier(**params)

    def test_default_drift_detector(self) -> None:
        model = ARTEClassifier(n_models=2)
        assert isinstance(model.drift_detector, ADWIN)
        assert model.drift_detector.delta == 0.001

    def test_lazy_initialization(self) -> None:
        model = ARTEClassifier(n_models=5, seed=1)
        assert len(model) == 0

        x = {"a": 1.0, "b": 2.0, "c": 3.0, "d": 4.0}
        model.learn_one(x, 1)
        assert len(model) == 5
        assert model.n_samples_seen == 1
        assert [m.idx_original for m in model] == list(range(5))
        for member in model:
            assert 2 <= member.subspace_size <= 4
            assert member.subspace_range == (2, 4)
            assert member.model.subspace_size == member.subspace_size

    def test_min_subspace_capped_by_features(self) -> None:
        model = ARTEClassifier(n_models=4, min_subspace_size=5, seed=1)
        model.learn_one({"a": 1.0, "b": 2.0}, 0)
        assert all(m.subspace_size == 2 for m in model)

    def test_predict_before_learning(self) -> None:
        model = ARTEClassifier(n_models=3, seed=1)
        assert model.predict_proba_one({"a": 1.0}) == {}
        assert model.predict_one({"a": 1.0}) is None

    def test_clone(self) -> None:
        model = ARTEClassifier(n_models=3, window_size=50, seed=4)
        model.learn_one({"a": 1.0}, 0)
        fresh = model.clone()
        assert len(fresh) == 0
        assert fresh.n_models == 3
        assert fresh.window_size == 50


class TestVoting:
    """Tests for the windowed accuracy vote gate."""

    def _model(self, linear_stream, n_models=2, **params):
        model = ARTEClassifier(
            n_models=n_models, window_update="predict", disable_drift_detection=True, seed=3, **params
        )
        return _train(model, linear_stream(200))

    def test_empty_windows_cannot_vote(self, linear_stream) -> None:
        model = self._model(linear_stream)
        assert all(m.window.n == 0 for m in model)
        assert model.votes_for_instance({"x0": 0.9, "x1": 0.5}) == {}
        assert model.predict_one({"x0": 0.9, "x1": 0.5}) is None

    def test_threshold_unchanged_without_accuracies(self, linear_stream) -> None:
        model = self._model(linear_stream)
        model._update_accuracy_threshold()
        assert model.accuracy_threshold == 0.0

    def test_below_average_members_excluded(self, linear_stream) -> None:
        model = self._model(linear_stream)
        good, bad = model
        good.window.update(True)
        bad.window.update(False)
        model._update_accuracy_threshold()
        assert model.accuracy_threshold == pytest.approx(0.5)

        x = {"x0": 0.8, "x1": 0.1}
        votes = model.votes_for_instance(x)
        assert votes == pytest.approx(utils.normalize(good.predict_proba_one(x)))

    def test_penalize_variance(self, linear_stream) -> None:
        model = self._model(linear_stream, penalize_variance=True)
        good, bad = model
        good.window.update(True)
        bad.window.update(False)
        model._update_accuracy_threshold()
        # mean 0.5 minus population standard deviation 0.5
        assert model.accuracy_threshold == pytest.approx(0.0)

        votes = model.votes_for_instance({"x0": 0.8, "x1": 0.1})
        assert sum(votes.values()) == pytest.approx(2.0)

    def test_equal_accuracies_all_vote(self, linear_stream) -> None:
        model = self._model(linear_stream, n_models=7)
        for member in model:
            for correct in [True, False, True]:
                member.window.update(correct)
        model._update_accuracy_threshold()
        assert all(model._is_eligible(m) for m in model)

    def test_votes_are_not_normalized(self, linear_stream, always_one) -> None:
        model = ARTEClassifier(n_models=5, disable_drift_detection=True, seed=2)
        _train(model, linear_stream(300))

        x = {"x0": 0.3, "x1": 0.6}
        n_eligible = sum(model._is_eligible(m) for m in model)
        assert n_eligible >= 1

        votes = model.votes_for_instance(x)
        assert sum(votes.values()) == pytest.approx(n_eligible)
        assert sum(model.predict_proba_one(x).values()) == pytest.approx(1.0)


class TestWindowUpdate:
    """When the accuracy windows are fed."""

    def test_learn_mode(self, linear_stream) -> None:
        model = ARTEClassifier(n_models=3, window_size=50, seed=5)
        stream = linear_stream(20)
        _train(model, stream)
        assert all(m.window.n == 20 for m in model)

        x, y = stream[0]
        model.votes_for_instance(x, y)
        assert all(m.window.n == 20 for m in model)

    def test_predict_mode(self, linear_stream) -> None:
        model = ARTEClassifier(n_models=3, window_size=50, window_update="predict", seed=5)
        stream = linear_stream(20)
        _train(model, stream)
        assert all(m.window.n == 0 for m in model)

        x, y = stream[0]
        model.votes_for_instance(x, y)
        assert all(m.window.n == 1 for m in model)
        assert model.accuracy_threshold == pytest.approx(sum(m.accuracy for m in model) / 3)

        # Prediction without a label leaves the windows alone
        model.predict_proba_one(x)
        assert all(m.window.n == 1 for m in model)

    def test_predict_mode_warns(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="arte.ensemble"):
            ARTEClassifier(n_models=2, window_update="predict")
        assert "votes_for_instance" in caplog.text

        caplog.clear()
        with caplog.at_level(logging.WARNING, logger="arte.ensemble"):
            ARTEClassifier(n_models=2)
        assert caplog.text == ""


class TestTraining:
    """Tests for online bagging, concurrency and drift handling."""

    @pytest.mark.parametrize("w", [0.5, 3.0])
    def test_instance_weight_scales_bagging_weight(self, w, always_one) -> None:
        model = ARTEClassifier(n_models=2, seed=1)
        model.learn_one({"a": 1.0, "b": 2.0}, 0, w=w)
        model.learn_one({"a": 2.0, "b": 1.0}, 1)
        for member in model:
            assert member.model.total_weight_observed == pytest.approx(w + 1.0)

    def test_sequential_and_threaded_runs_match(self, linear_stream) -> None:
        stream = linear_stream(800, seed=9)
        sequential = _train(ARTEClassifier(n_models=6, n_jobs=0, grace_period=50, seed=7), stream)
        threaded = _train(ARTEClassifier(n_models=6, n_jobs=4, grace_period=50, seed=7), stream)
        try:
            for a, b in zip(sequential, threaded):
                assert a.subspace_size == b.subspace_size
                assert a.model.summary == b.model.summary
                assert a.n_drifts_detected == b.n_drifts_detected
                assert list(a.window.values()) == list(b.window.values())
            for x, _ in stream[:50]:
                assert sequential.predict_proba_one(x) == threaded.predict_proba_one(x)
        finally:
            threaded.close()

    @pytest.mark.parametrize("n_jobs", [0, 3])
    def test_member_failure_propagates(self, n_jobs, monkeypatch, always_one) -> None:
        original = ARTEBaseLearner.learn_one

        def failing(self, x, y, *, w, n_samples_seen):
            if self.idx_original == 1:
                raise RuntimeError("tree 1 failed")
            return original(self, x, y, w=w, n_samples_seen=n_samples_seen)

        monkeypatch.setattr(ARTEBaseLearner, "learn_one", failing)
        model = ARTEClassifier(n_models=3, n_jobs=n_jobs, seed=1)
        try:
            with pytest.raises(RuntimeError, match="tree 1 failed"):
                model.learn_one({"a": 1.0, "b": 0.0}, 1)
        finally:
            model.close()

    def test_zero_weight_skips_training(self, linear_stream, monkeypatch) -> None:
        monkeypatch.setattr("arte.ensemble.poisson", lambda rate, rng: 0)
        model = _train(ARTEClassifier(n_models=3, seed=1), linear_stream(30))
        assert all(m.model.total_weight_observed == 0 for m in model)

    def test_single_tree_learns_linear_boundary(self, linear_stream, always_one) -> None:
        model = ARTEClassifier(n_models=1, grace_period=50, disable_drift_detection=True, seed=42)
        stream = linear_stream(1_000, seed=1)

        split_at = None
        for i, (x, y) in enumerate(stream, start=1):
            model.learn_one(x, y)
            if split_at is None and model[0].model.n_branches > 0:
                split_at = i
        assert split_at is not None and split_at <= 200
        assert model[0].model.total_weight_observed == 1_000

        correct = sum(model.predict_one(x) == y for x, y in stream)
        assert correct / len(stream) >= 0.9

    def test_label_flip_triggers_reset(self, linear_stream) -> None:
        model = ARTEClassifier(n_models=3, grace_period=50, seed=1)
        _train(model, linear_stream(7_000, seed=2, flip_at=5_000))

        assert model.n_drifts_detected() >= 1
        reset_members = [m for m in model if 5_000 < m.last_drift_on <= 7_000]
        assert reset_members
        for member in reset_members:
            assert member.created_on == member.last_drift_on
            assert model.n_drifts_detected(member.idx_original) == member.n_drifts_detected
