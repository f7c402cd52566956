"""Tests for the windowed accuracy tracker."""

import numpy as np
import pytest

from arte import AccuracyWindow


class TestAccuracyWindow:
    """Tests for AccuracyWindow."""

    def test_empty_window(self) -> None:
        """An empty window has no accuracy."""
        window = AccuracyWindow(5)
        assert window.n == 0
        assert window.accuracy is None

    def test_partial_fill(self) -> None:
        """Before the window is full the fill count equals the number of records."""
        window = AccuracyWindow(5)
        for correct in [True, False, True]:
            window.update(correct)

        assert window.n == 3
        assert window.accuracy == pytest.approx(2 / 3)
        np.testing.assert_array_equal(window.values(), [1, 0, 1])

    @pytest.mark.parametrize("extra", [0, 1, 4, 7, 23])
    def test_circular_overwrite(self, extra) -> None:
        """After W + k records the accuracy is the mean of the last W records."""
        size = 6
        records = [(i * 7) % 3 == 0 for i in range(size + extra)]
        window = AccuracyWindow(size)
        for correct in records:
            window.update(correct)

        last = records[-size:]
        assert window.n == size
        assert window.accuracy == sum(last) / size
        np.testing.assert_array_equal(window.values(), [int(c) for c in last])

    def test_running_sum_matches_slots(self) -> None:
        """The running sum never drifts away from the buffer content."""
        window = AccuracyWindow(4)
        for i in range(50):
            window.update(i % 5 != 0)
            assert window._sum == int(window._buffer[: window.n].sum())

    def test_reset(self) -> None:
        """Reset empties the window."""
        window = AccuracyWindow(3)
        for _ in range(5):
            window.update(True)
        window.reset()

        assert window.n == 0
        assert window.accuracy is None
        window.update(False)
        assert window.accuracy == 0.0

    def test_invalid_size(self) -> None:
        """A window needs room for at least one record."""
        with pytest.raises(ValueError, match="at least 1"):
            AccuracyWindow(0)
