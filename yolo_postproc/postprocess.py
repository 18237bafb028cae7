from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .classify import classify
from .decode import BOX_CHANNELS, decode_boxes
from .errors import InvalidModelOutput
from .letterbox import LetterboxMapping
from .masks import DEFAULT_MASK_THRESHOLD, reconstruct_masks
from .metadata import ModelInfo
from .nms import suppress
from .tensors import TensorView
from .types import Classification, Detection, Segmentation


@dataclass(frozen=True)
class YoloPostConfig:
    """
    Post-processing knobs for YOLO classification / detection / segmentation exports.
    """

    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    # None keeps every detection that survives NMS.
    max_detections: Optional[int] = None
    # Mask luminance (0-255) strictly above this is foreground.
    mask_threshold: int = DEFAULT_MASK_THRESHOLD
    # "nearest" or "bilinear" when resampling prototype masks into boxes.
    mask_interpolation: str = "nearest"
    # Threads used to build masks; None or 1 runs inline.
    mask_workers: Optional[int] = None
    # Truncate letterbox padding to whole pixels (older exporter behaviour).
    integer_padding: bool = False

    def __post_init__(self) -> None:
        if not 0.0 <= self.conf_threshold <= 1.0:
            raise ValueError("conf_threshold must be within [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be within [0, 1]")
        if self.max_detections is not None and self.max_detections < 0:
            raise ValueError("max_detections must be >= 0")
        if not 0 <= self.mask_threshold <= 255:
            raise ValueError("mask_threshold must be within [0, 255]")
        if self.mask_interpolation not in ("nearest", "bilinear"):
            raise ValueError("mask_interpolation must be 'nearest' or 'bilinear'")
        if self.mask_workers is not None and self.mask_workers < 1:
            raise ValueError("mask_workers must be >= 1")


class YoloPostprocessor:
    """
    Turns the named output tensors of one inference call into results.

    Layouts (per call, batch of 1):
    - classification: output_names[0] shaped (C,) or (1, C)
    - detection:      output_names[0] shaped (1, 4 + C, A): cx, cy, w, h, class scores
    - segmentation:   output_names[0] shaped (1, 4 + C + M, A) with M mask
                      coefficients, output_names[1] shaped (1, M, mh, mw)

    All coordinates in the results are in original image pixels.
    """

    def __init__(self, model: ModelInfo, cfg: YoloPostConfig = YoloPostConfig()):
        self.model = model
        self.cfg = cfg

    def mapping(self, image_size: Tuple[int, int]) -> LetterboxMapping:
        img_w, img_h = image_size
        return LetterboxMapping.from_dimensions(
            img_w,
            img_h,
            self.model.input_width,
            self.model.input_height,
            integer_padding=self.cfg.integer_padding,
        )

    def classify(self, outputs: Mapping[str, np.ndarray], top_k: int) -> List[Classification]:
        scores = TensorView.scores(self._output(outputs, 0), name=self.model.output_names[0])
        return classify(scores, self.model.labels, top_k)

    def detect(
        self,
        outputs: Mapping[str, np.ndarray],
        image_size: Tuple[int, int],
        threshold: Optional[float] = None,
    ) -> List[Detection]:
        """
        Decode, threshold and suppress boxes.

        Args:
            image_size: (width, height) of the original image
            threshold: overrides cfg.conf_threshold for this call
        """

        mapping = self.mapping(image_size)
        tensor = TensorView.detections(self._output(outputs, 0), name=self.model.output_names[0])
        conf = self.cfg.conf_threshold if threshold is None else threshold
        candidates = decode_boxes(tensor, mapping, self.model.labels, conf)
        return suppress(candidates, self.cfg.iou_threshold, self.cfg.max_detections)

    def segment(
        self,
        outputs: Mapping[str, np.ndarray],
        image_size: Tuple[int, int],
        detections: Sequence[Detection],
    ) -> List[Segmentation]:
        mapping = self.mapping(image_size)
        tensor = TensorView.detections(self._output(outputs, 0), name=self.model.output_names[0])
        protos = TensorView.prototypes(self._output(outputs, 1), name=self._output_name(1))
        return reconstruct_masks(
            detections,
            tensor,
            protos,
            mapping,
            coefficient_offset=BOX_CHANNELS + self.model.num_classes,
            mask_threshold=self.cfg.mask_threshold,
            interpolation=self.cfg.mask_interpolation,
            workers=self.cfg.mask_workers,
        )

    # ------------------------------------------------------------------ #
    # Helper internal
    # ------------------------------------------------------------------ #
    def _output_name(self, index: int) -> str:
        names = self.model.output_names
        if index >= len(names):
            raise InvalidModelOutput(f"Model declares {len(names)} outputs, need output #{index}.")
        return names[index]

    def _output(self, outputs: Mapping[str, np.ndarray], index: int) -> np.ndarray:
        name = self._output_name(index)
        if name not in outputs:
            raise InvalidModelOutput(f"Missing output tensor {name!r} (got {sorted(outputs)})")
        return outputs[name]
