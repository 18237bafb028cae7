from __future__ import annotations

from typing import Iterable, Optional, Tuple

import numpy as np

from .types import Detection, Segmentation


_PALETTE = [
    (255, 56, 56),
    (255, 157, 151),
    (255, 112, 31),
    (255, 178, 29),
    (207, 210, 49),
    (72, 249, 10),
    (146, 204, 23),
    (61, 219, 134),
    (26, 147, 52),
    (0, 212, 187),
    (44, 153, 168),
    (0, 194, 255),
    (52, 69, 147),
    (100, 115, 255),
    (0, 24, 236),
    (132, 56, 255),
    (82, 0, 133),
    (203, 56, 255),
    (255, 149, 200),
    (255, 55, 199),
]


def color_for_class_id(class_id: Optional[int]) -> Tuple[int, int, int]:
    """
    Deterministic BGR color for a class id (OpenCV expects BGR).
    """

    if class_id is None:
        return (0, 255, 255)
    if 0 <= class_id < len(_PALETTE):
        return _PALETTE[class_id]

    rng = np.random.default_rng(int(class_id))
    bgr = rng.integers(0, 256, size=3, dtype=np.uint8)
    return int(bgr[0]), int(bgr[1]), int(bgr[2])


def _require_bgr(image_bgr: np.ndarray) -> None:
    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    show_score: bool = True,
    box_thickness: int = 1,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw bounding boxes + labels on an OpenCV BGR image and return a copy.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_detections(). Install with `pip install opencv-python`.") from e

    _require_bgr(image_bgr)
    out = image_bgr.copy()
    h, w = out.shape[:2]

    for det in detections:
        x1, y1, x2, y2 = det.as_xyxy()
        x1, x2 = min(x1, w - 1), min(x2, w - 1)
        y1, y2 = min(y1, h - 1), min(y2, h - 1)

        color = color_for_class_id(det.class_id)
        cv2.rectangle(out, (x1, y1), (x2, y2), color, thickness=box_thickness)

        label = f"{det.label} {det.confidence:.2f}" if show_score else det.label
        (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
        # Label above the box if it fits, else inside.
        y_text_top = y1 - th - baseline
        if y_text_top < 0:
            y_text_top = y1

        x_text_right = min(x1 + tw, w - 1)
        y_text_bottom = min(y_text_top + th + baseline, h - 1)

        cv2.rectangle(out, (x1, y_text_top), (x_text_right, y_text_bottom), color, thickness=-1)
        cv2.putText(
            out,
            label,
            (x1, min(y_text_top + th, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            (255, 255, 255),
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    return out


def draw_segmentations(
    image_bgr: np.ndarray,
    segmentations: Iterable[Segmentation],
    *,
    alpha: float = 0.5,
    draw_boxes: bool = True,
) -> np.ndarray:
    """
    Blend each foreground mask into its rectangle with the class color and return a copy.
    """

    _require_bgr(image_bgr)
    if not 0.0 <= alpha <= 1.0:
        raise ValueError("alpha must be within [0, 1]")

    segmentations = list(segmentations)
    out = image_bgr.copy()
    for seg in segmentations:
        rect = seg.rectangle
        if rect.is_empty:
            continue
        region = out[rect.y:rect.y + rect.height, rect.x:rect.x + rect.width]
        fg = seg.binary_mask()[: region.shape[0], : region.shape[1]]
        color = np.array(color_for_class_id(seg.detection.class_id), dtype=np.float32)
        blended = region[fg].astype(np.float32) * (1.0 - alpha) + color * alpha
        region[fg] = blended.astype(np.uint8)

    if draw_boxes:
        out = draw_detections(out, [s.detection for s in segmentations])
    return out
