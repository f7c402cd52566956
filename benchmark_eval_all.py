import itertools
import logging
import os

import pandas as pd
from river import forest
from river.datasets import synth
from river.drift import ADWIN

from arte import AREClassifier, ARTEClassifier, plot_windowed_accuracy, prequential_evaluation, read_arff

logger = logging.getLogger("benchmark")

N_INSTANCES = 50_000


def abrupt_drift(before, after, position):
    """`position` instances of `before` followed by `after` until N_INSTANCES."""
    return itertools.chain(before.take(position), after.take(N_INSTANCES - position))


def synthetic_streams() -> dict:
    """Drifting synthetic streams, generated on the fly. Each entry is (factory, nominal attributes)."""
    return {
        "SEA_a": (
            lambda: abrupt_drift(
                synth.SEA(variant=0, seed=42),
                synth.SEA(variant=3, seed=43),
                position=N_INSTANCES // 2,
            ),
            None,
        ),
        "SEA_g": (
            lambda: synth.ConceptDriftStream(
                stream=synth.SEA(variant=0, seed=42),
                drift_stream=synth.SEA(variant=3, seed=42),
                position=N_INSTANCES // 2, width=10_000, seed=42,
            ).take(N_INSTANCES),
            None,
        ),
        "AGR_a": (
            lambda: abrupt_drift(
                synth.Agrawal(classification_function=0, seed=42),
                synth.Agrawal(classification_function=2, seed=43),
                position=N_INSTANCES // 2,
            ),
            ["elevel", "car", "zipcode"],
        ),
        "HYPER": (
            lambda: synth.Hyperplane(seed=42, n_features=10, n_drift_features=2, mag_change=0.001).take(N_INSTANCES),
            None,
        ),
    }


def arff_streams(data_dir: str) -> dict:
    streams = {}
    if not os.path.isdir(data_dir):
        return streams
    for fname in sorted(os.listdir(data_dir)):
        if not fname.endswith(".arff"):
            continue
        path = os.path.join(data_dir, fname)
        schema, _ = read_arff(path)
        streams[os.path.splitext(fname)[0]] = (
            lambda path=path: read_arff(path)[1],
            schema.nominal_attributes or None,
        )
    return streams


def build_learners(nominal_attributes) -> dict:
    return {
        "ARTE": ARTEClassifier(
            n_models=100,
            lambda_value=6.0,
            n_jobs=-1,
            window_size=400,
            grace_period=100,
            delta=0.01,
            nominal_attributes=nominal_attributes,
            seed=42,
        ),
        "ARE": AREClassifier(
            n_models=100,
            n_jobs=-1,
            nominal_attributes=nominal_attributes,
            seed=42,
        ),
        "ARF": forest.ARFClassifier(
            n_models=100,
            seed=42,
            grace_period=50,
            delta=0.01,
            nominal_attributes=nominal_attributes,
            leaf_prediction="nba",
            drift_detector=ADWIN(delta=0.001),
            warning_detector=ADWIN(delta=0.01),
        ),
    }


def run_evaluation(stream_name: str, stream_factory, nominal_attributes, output_dir: str,
                   window_size: int = 1000, progress_bar: bool = True) -> pd.DataFrame:
    """
    Run a prequential evaluation of every learner on one stream, save the windowed
    accuracy of each run, and return the cumulative metrics as a DataFrame.
    """
    logger.info("Processing stream: %s", stream_name)

    rows = []
    results = []
    for learner_name, learner in build_learners(nominal_attributes).items():
        result = prequential_evaluation(
            stream=stream_factory(),
            model=learner,
            window_size=window_size,
            progress_bar=progress_bar,
        )
        if hasattr(learner, "close"):
            learner.close()

        result.learner = learner_name
        results.append(result)
        rows.append(result.as_row(stream_name))

        windows_csv = os.path.join(output_dir, f"windows_{learner_name}_{stream_name}.csv")
        result.windowed.to_csv(windows_csv, index=False)
        logger.info("%s on %s: accuracy=%.4f (%.1fs)", learner_name, stream_name, result.accuracy, result.wallclock)

    plot_windowed_accuracy(results, title=stream_name, path=os.path.join(output_dir, f"windows_{stream_name}.png"))
    return pd.DataFrame(rows)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    data_dir = "./data"
    output_dir = "./results"
    os.makedirs(output_dir, exist_ok=True)

    streams = {**synthetic_streams(), **arff_streams(data_dir)}

    all_metrics = [
        run_evaluation(name, factory, nominal, output_dir)
        for name, (factory, nominal) in streams.items()
    ]

    if all_metrics:
        all_df = pd.concat(all_metrics, ignore_index=True)
        combined_csv = os.path.join(output_dir, "metrics_all_streams.csv")
        all_df.to_csv(combined_csv, index=False)
        logger.info("Saved combined cumulative metrics to %s", combined_csv)
    else:
        logger.info("No metrics to combine.")
