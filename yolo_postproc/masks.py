"""
Instance mask reconstruction from prototype masks.

Segmentation heads emit, per candidate, a small vector of mask coefficients
next to the box/class channels, plus one shared low-resolution prototype
tensor (batch, channel, row, column). A detection's mask is the sigmoid of the
coefficient-weighted sum of prototypes, quantized to 8-bit luminance and then
resampled into the detection's rectangle in image space.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Union

import numpy as np

from .errors import InvalidModelOutput
from .letterbox import LetterboxMapping
from .tensors import TensorView
from .types import Detection, Segmentation

logger = logging.getLogger(__name__)

# Luminance strictly above this value counts as foreground.
DEFAULT_MASK_THRESHOLD = 127

_EPS = float(np.finfo(np.float64).eps)


def sigmoid(x: np.ndarray) -> np.ndarray:
    """
    Numerically stable logistic function, clipped to stay strictly inside (0, 1).
    """

    x = np.asarray(x, dtype=np.float64)
    e = np.exp(-np.abs(x))
    out = np.where(x >= 0, 1.0 / (1.0 + e), e / (1.0 + e))
    return np.clip(out, _EPS, 1.0 - _EPS)


def to_luminance(probabilities: np.ndarray) -> np.ndarray:
    # np.rint rounds half to even: 0.5 * 255 = 127.5 -> 128.
    return np.rint(np.asarray(probabilities) * 255.0).astype(np.uint8)


def pixel_confidence(luminance: np.ndarray, threshold: int = DEFAULT_MASK_THRESHOLD) -> np.ndarray:
    lum = np.asarray(luminance)
    return np.where(lum > threshold, lum.astype(np.float32) / 255.0, 0.0).astype(np.float32)


def reconstruct_masks(
    detections: Sequence[Detection],
    coefficients: Union[TensorView, np.ndarray],
    prototypes: Union[TensorView, np.ndarray],
    mapping: LetterboxMapping,
    *,
    coefficient_offset: int,
    mask_channels: Optional[int] = None,
    mask_threshold: int = DEFAULT_MASK_THRESHOLD,
    interpolation: str = "nearest",
    workers: Optional[int] = None,
) -> List[Segmentation]:
    """
    Build one Segmentation per detection, in input order.

    Args:
        coefficients: detection tensor (batch, channel, candidate); the mask
            coefficients of candidate j live at channels
            [coefficient_offset, coefficient_offset + mask_channels).
        prototypes: mask basis tensor (batch, channel, row, column).
        mapping: the same letterbox mapping used to decode the boxes.
        mask_channels: number of prototypes to combine; defaults to the
            prototype tensor's channel extent.
        interpolation: "nearest" or "bilinear" resampling into the rectangle.
        workers: thread count for fanning out across detections; None or 1
            runs inline.
    """

    coeff_view = coefficients if isinstance(coefficients, TensorView) else TensorView.detections(coefficients)
    proto_view = prototypes if isinstance(prototypes, TensorView) else TensorView.prototypes(prototypes)

    if mask_channels is None:
        mask_channels = proto_view.extent("channel")
    if mask_channels <= 0:
        raise InvalidModelOutput(f"mask_channels must be > 0 (got {mask_channels})")
    if coefficient_offset < 0:
        raise InvalidModelOutput(f"coefficient_offset must be >= 0 (got {coefficient_offset})")
    proto_view.require_extent("channel", mask_channels)
    coeff_view.require_extent("channel", coefficient_offset + mask_channels)
    interp = _interpolation_flag(interpolation)

    if not detections:
        return []

    num_candidates = coeff_view.extent("candidate")
    for det in detections:
        if not 0 <= det.candidate_index < num_candidates:
            raise InvalidModelOutput(
                f"{coeff_view.name}: candidate index {det.candidate_index} out of range [0, {num_candidates})"
            )

    # (mask_channels, candidates) and (mask_channels, rows, cols) for batch 0.
    coeff_block = coeff_view.array[0, coefficient_offset:coefficient_offset + mask_channels, :]
    basis = proto_view.array[0, :mask_channels]

    def build(det: Detection) -> Segmentation:
        weights = coeff_block[:, det.candidate_index].astype(np.float64)
        logits = np.tensordot(weights, basis, axes=1)
        luminance = to_luminance(sigmoid(logits))
        cropped = _resample_into_rectangle(luminance, det, mapping, interp)
        return Segmentation(detection=det, mask=pixel_confidence(cropped, mask_threshold))

    if workers is not None and workers > 1 and len(detections) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(build, detections))
    else:
        results = [build(det) for det in detections]

    logger.debug(
        "Reconstructed %d masks from %dx%d prototypes (%d channels)",
        len(results),
        proto_view.extent("column"),
        proto_view.extent("row"),
        mask_channels,
    )
    return results


def _interpolation_flag(name: str) -> int:
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for mask resampling. Install with `pip install opencv-python`.") from e

    flags = {"nearest": cv2.INTER_NEAREST, "bilinear": cv2.INTER_LINEAR}
    if name not in flags:
        raise ValueError(f"interpolation must be one of {sorted(flags)} (got {name!r})")
    return flags[name]


def _resample_into_rectangle(
    luminance: np.ndarray,
    det: Detection,
    mapping: LetterboxMapping,
    interpolation: int,
) -> np.ndarray:
    """
    Sample the prototype-resolution luminance grid at every pixel of the rectangle.

    Image pixel centres are sent back through the box transform
    (input = image / gain + pad) and then scaled to prototype resolution.
    """

    import cv2  # type: ignore

    rect = det.rectangle
    if rect.is_empty:
        return np.zeros((max(0, rect.height), max(0, rect.width)), dtype=np.uint8)

    grid_h, grid_w = luminance.shape
    sx = grid_w / mapping.dims.input_width
    sy = grid_h / mapping.dims.input_height

    xs = np.arange(rect.x, rect.x + rect.width, dtype=np.float64) + 0.5
    ys = np.arange(rect.y, rect.y + rect.height, dtype=np.float64) + 0.5
    in_x, in_y = mapping.to_input(xs, ys)
    map_x = (in_x * sx - 0.5).astype(np.float32)
    map_y = (in_y * sy - 0.5).astype(np.float32)

    map_x = np.ascontiguousarray(np.broadcast_to(map_x[None, :], (rect.height, rect.width)))
    map_y = np.ascontiguousarray(np.broadcast_to(map_y[:, None], (rect.height, rect.width)))

    return cv2.remap(
        np.ascontiguousarray(luminance),
        map_x,
        map_y,
        interpolation=interpolation,
        borderMode=cv2.BORDER_REPLICATE,
    )
