from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Iterator, List, Tuple, Union

import numpy as np
from scipy.io.arff import loadarff

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class StreamSchema:
    """Feature metadata of a stream: which features are nominal and which classes exist."""

    feature_names: List[str]
    nominal_attributes: List[str]
    classes: List[Any]
    target: str

    @property
    def n_features(self) -> int:
        return len(self.feature_names)

    @property
    def n_classes(self) -> int:
        return len(self.classes)

    def is_nominal(self, feature: str) -> bool:
        return feature in self.nominal_attributes


def _to_native(value):
    if isinstance(value, bytes):
        value = value.decode("utf-8")
        return None if value == "?" else value
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return None if np.isnan(value) else float(value)
    return value


def read_arff(
    filepath: str,
    target: Union[int, str] = -1,
) -> Tuple[StreamSchema, Iterator[Tuple[Dict[str, Any], Any]]]:
    """
    Reads an ARFF file into a schema and a stream of `(x, y)` pairs in River's format.

    Args:
        filepath: Path to the ARFF file.
        target: Which attribute holds the class label:
          - int index into the ARFF's attribute list (default -1, last attribute)
          - str name of the attribute

    Returns:
        A tuple (schema, stream) where the stream yields
          x: dict of feature_name -> Python-native value (None when missing)
          y: the class label, rows without a label are skipped

    Raises:
        FileNotFoundError: If the filepath does not exist.
        ValueError: If `target` is out of range or not a known attribute.
    """
    with open(filepath, "r", encoding="utf-8") as f:
        data, meta = loadarff(f)

    names = meta.names()

    if isinstance(target, int):
        try:
            target_name = names[target]
        except IndexError:
            raise ValueError(f"Target index {target} out of range for attributes {names}")
    else:
        if target not in names:
            raise ValueError(f"Target name '{target}' not found in attributes {names}")
        target_name = target

    feature_names = [n for n in names if n != target_name]
    nominal_attributes = [n for n in feature_names if meta[n][0] == "nominal"]

    target_type, target_range = meta[target_name]
    if target_type == "nominal":
        classes = list(target_range)
    else:
        classes = sorted({_to_native(v) for v in data[target_name]} - {None})

    schema = StreamSchema(
        feature_names=feature_names,
        nominal_attributes=nominal_attributes,
        classes=classes,
        target=target_name,
    )
    logger.info(
        "ARFF reader: %s, target=%r, %d features (%d nominal), %d classes",
        filepath, target_name, schema.n_features, len(nominal_attributes), schema.n_classes,
    )

    def rows() -> Iterator[Tuple[Dict[str, Any], Any]]:
        for row in data:
            y = _to_native(row[target_name])
            if y is None:
                logger.warning("Skipping row with a missing label: %s", row)
                continue
            if isinstance(y, float) and y.is_integer():
                y = int(y)
            yield {name: _to_native(row[name]) for name in feature_names}, y

    return schema, rows()
