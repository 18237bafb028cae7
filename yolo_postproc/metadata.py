from __future__ import annotations

import ast
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .errors import InvalidDimensions, InvalidModelOutput


@dataclass(frozen=True)
class ModelInfo:
    """
    What post-processing needs to know about a model: ordered label names, the
    fixed input resolution and the names of its output tensors.

    output_names[0] is the detection (or classification) output;
    output_names[1], when present, is the prototype mask output.
    """

    labels: Tuple[str, ...]
    input_width: int
    input_height: int
    output_names: Tuple[str, ...] = ("output0", "output1")

    def __post_init__(self) -> None:
        if self.input_width <= 0 or self.input_height <= 0:
            raise InvalidDimensions(
                f"Model input size must be > 0 (got {self.input_width}x{self.input_height})"
            )
        if not self.labels:
            raise InvalidModelOutput("Model declares no labels.")
        if not self.output_names:
            raise InvalidModelOutput("Model declares no outputs.")

    @property
    def num_classes(self) -> int:
        return len(self.labels)

    @classmethod
    def from_onnx_metadata(
        cls,
        custom_metadata: Mapping[str, str],
        input_shape: Sequence[object],
        output_names: Sequence[str],
    ) -> "ModelInfo":
        """
        Build from ONNX custom metadata as written by Ultralytics exports:
        `names` is a Python dict literal and `imgsz` a list literal "[h, w]".

        `input_shape` (NCHW) is used when `imgsz` is missing or symbolic.
        """

        if "names" not in custom_metadata:
            raise InvalidModelOutput("ONNX metadata has no 'names' entry.")
        labels = labels_from_mapping(parse_names(custom_metadata["names"]))

        height: Optional[int] = None
        width: Optional[int] = None
        if "imgsz" in custom_metadata:
            imgsz = ast.literal_eval(custom_metadata["imgsz"])
            if isinstance(imgsz, int):
                height = width = imgsz
            else:
                height, width = int(imgsz[0]), int(imgsz[1])
        elif len(input_shape) == 4 and all(isinstance(d, int) for d in input_shape[2:]):
            height, width = int(input_shape[2]), int(input_shape[3])  # type: ignore[arg-type]

        if height is None or width is None:
            raise InvalidDimensions("Could not determine model input size from metadata or input shape.")

        return cls(labels=labels, input_width=width, input_height=height, output_names=tuple(output_names))


def parse_names(raw: str) -> Dict[int, str]:
    """
    Parse an Ultralytics `names` metadata value, e.g. "{0: 'person', 1: 'bicycle'}".
    """

    try:
        value = ast.literal_eval(raw)
    except (ValueError, SyntaxError) as e:
        raise InvalidModelOutput(f"Could not parse label names: {raw[:80]!r}") from e

    if isinstance(value, (list, tuple)):
        return {i: str(name) for i, name in enumerate(value)}
    if not isinstance(value, dict):
        raise InvalidModelOutput(f"Label names must be a dict or list, got {type(value).__name__}")
    return {int(k): str(v) for k, v in value.items()}


def labels_from_mapping(names: Mapping[int, str]) -> Tuple[str, ...]:
    """
    Turn {class_id: name} into a label tuple ordered by class id.

    Class ids must be contiguous from 0, since they index tensor channels.
    """

    ids = sorted(names)
    if ids != list(range(len(ids))):
        raise InvalidModelOutput(f"Class ids must be contiguous from 0 (got {ids[:10]}...)")
    return tuple(names[i] for i in ids)


def load_class_names(metadata_path: str) -> Dict[int, str]:
    """
    Load class names from the lightweight `metadata.yaml` format:

        names:
          0: person
          1: bicycle
          ...

    This function intentionally avoids adding a PyYAML dependency.
    """

    names: Dict[int, str] = {}
    in_names = False

    with open(metadata_path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line == "names:":
                in_names = True
                continue
            if not in_names:
                continue

            # Parse "id: label"
            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            right = right.strip().strip("'").strip('"')
            if not left.isdigit():
                continue
            names[int(left)] = right

    return names


def load_model_info(
    metadata_path: str,
    input_size: Tuple[int, int],
    output_names: Sequence[str] = ("output0", "output1"),
) -> ModelInfo:
    """
    ModelInfo from a `names:` metadata file plus an explicit (width, height) input size.
    """

    labels = labels_from_mapping(load_class_names(metadata_path))
    width, height = input_size
    return ModelInfo(labels=labels, input_width=int(width), input_height=int(height), output_names=tuple(output_names))
