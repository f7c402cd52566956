from __future__ import annotations

import dataclasses
import time
import typing

import pandas as pd
from river import base, metrics
from tqdm.auto import tqdm


@dataclasses.dataclass
class PrequentialResults:
    learner: str
    n_instances: int
    wallclock: float
    accuracy: float
    windowed: pd.DataFrame
    n_drifts: int | None = None

    def as_row(self, stream_name: str) -> dict:
        return {
            "Learner": self.learner,
            "Stream": stream_name,
            "Instances": self.n_instances,
            "Wallclock Time (s)": self.wallclock,
            "Cumulative Accuracy": self.accuracy,
            "Drifts": self.n_drifts,
        }


def prequential_evaluation(
    stream: typing.Iterable[tuple[dict, typing.Any]],
    model: base.Classifier,
    max_instances: int | None = None,
    window_size: int = 1000,
    progress_bar: bool = False,
) -> PrequentialResults:
    """
    Run and evaluate a classifier on a stream with prequential (test-then-train)
    evaluation.

    Every instance is first used to test the model, then to train it. Accuracy is
    tracked over the whole stream and over consecutive windows of `window_size`
    instances.
    """
    if window_size < 1:
        raise ValueError(f"window_size must be at least 1, got {window_size}")

    cumulative = metrics.Accuracy()
    windowed = metrics.Accuracy()
    windows = []

    bar = tqdm(total=max_instances, desc="Eval", disable=not progress_bar)
    start = time.perf_counter()

    n_instances = 0
    for x, y in stream:
        if max_instances is not None and n_instances >= max_instances:
            break

        y_pred = model.predict_one(x)
        cumulative.update(y, y_pred)
        windowed.update(y, y_pred)
        model.learn_one(x, y)
        n_instances += 1
        bar.update(1)

        if n_instances % window_size == 0:
            windows.append({"instances": n_instances, "accuracy": windowed.get()})
            windowed = metrics.Accuracy()

    # Last, partial window
    if n_instances % window_size != 0:
        windows.append({"instances": n_instances, "accuracy": windowed.get()})

    bar.close()
    wallclock = time.perf_counter() - start

    n_drifts = None
    if callable(getattr(model, "n_drifts_detected", None)):
        n_drifts = model.n_drifts_detected()

    return PrequentialResults(
        learner=str(model),
        n_instances=n_instances,
        wallclock=wallclock,
        accuracy=cumulative.get(),
        windowed=pd.DataFrame(windows, columns=["instances", "accuracy"]),
        n_drifts=n_drifts,
    )


def plot_windowed_accuracy(results: typing.Sequence[PrequentialResults], title: str = "", path: str | None = None):
    """Plot the windowed accuracy of one or more runs. Saves the figure when `path` is given."""
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(10, 5))
    for result in results:
        ax.plot(result.windowed["instances"], result.windowed["accuracy"], label=result.learner)
    ax.set_xlabel("Instances")
    ax.set_ylabel("Windowed accuracy")
    ax.set_ylim(0.0, 1.0)
    if title:
        ax.set_title(title)
    ax.legend()
    ax.grid(True)
    fig.tight_layout()

    if path is not None:
        fig.savefig(path)
        plt.close(fig)
    return fig
