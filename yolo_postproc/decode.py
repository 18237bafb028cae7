import logging
from typing import List, Sequence, Union

import numpy as np

from .errors import InvalidModelOutput
from .letterbox import LetterboxMapping
from .tensors import TensorView
from .types import Detection, Rectangle

logger = logging.getLogger(__name__)

# Channels 0-3 hold cx, cy, w, h; class confidences follow.
BOX_CHANNELS = 4


def decode_boxes(
    tensor: Union[TensorView, np.ndarray],
    mapping: LetterboxMapping,
    labels: Sequence[str],
    threshold: float,
) -> List[Detection]:
    """
    Decode a (batch, 4 + C [+ extra], candidates) tensor into image-space detections.

    Every candidate is handled independently: its center/size box is mapped to
    image space, truncated to whole pixels and clamped to the image, then one
    Detection is emitted for each class whose confidence is >= `threshold`.
    A candidate can therefore appear zero, one or several times in the result.
    The order of the returned list carries no meaning.
    """

    view = tensor if isinstance(tensor, TensorView) else TensorView.detections(tensor)
    num_classes = len(labels)
    view.require_extent("channel", BOX_CHANNELS + num_classes)

    img_w = mapping.dims.image_width
    img_h = mapping.dims.image_height
    gain = np.float32(mapping.gain)
    x_pad = np.float32(mapping.x_pad)
    y_pad = np.float32(mapping.y_pad)

    detections: List[Detection] = []
    for i in range(view.extent("batch")):
        p = view.array[i]
        cx, cy, w, h = p[0], p[1], p[2], p[3]

        x1 = _to_pixels((cx - w / 2 - x_pad) * gain, img_w)
        y1 = _to_pixels((cy - h / 2 - y_pad) * gain, img_h)
        x2 = _to_pixels((cx + w / 2 - x_pad) * gain, img_w)
        y2 = _to_pixels((cy + h / 2 - y_pad) * gain, img_h)

        class_scores = p[BOX_CHANNELS:BOX_CHANNELS + num_classes]
        # (class, candidate) pairs; NaN scores compare False and drop out.
        class_ids, candidates = np.nonzero(class_scores >= threshold)

        for l, j in zip(class_ids.tolist(), candidates.tolist()):
            detections.append(
                Detection(
                    label=labels[l],
                    confidence=float(class_scores[l, j]),
                    rectangle=Rectangle.from_xyxy(x1[j], y1[j], x2[j], y2[j]),
                    candidate_index=j,
                    class_id=l,
                )
            )

    logger.debug(
        "Decoded %d detections from %d candidates (threshold=%.3f)",
        len(detections),
        view.extent("candidate"),
        threshold,
    )
    return detections


def _to_pixels(values: np.ndarray, limit: int) -> np.ndarray:
    """
    Truncate toward zero and clamp to [0, limit].

    Clamping happens in float space first so inf/huge raw values never overflow
    the integer cast.
    """

    v = np.nan_to_num(np.trunc(values), nan=0.0, posinf=float(limit), neginf=0.0)
    return np.clip(v, 0, limit).astype(np.int64)
