import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from .types import Detection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.45
    # None keeps every survivor.
    max_detections: Optional[int] = None


def nms(
    boxes: np.ndarray,
    scores: np.ndarray,
    cfg: NMSConfig,
    tiebreak: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, best score first.

    Boxes whose IoU with an already kept box is greater than
    `cfg.iou_threshold` are dropped. Equal scores are ordered by ascending
    `tiebreak` (defaults to the input position).
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int32)

    boxes = boxes.astype(np.float64, copy=False)
    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)

    if tiebreak is None:
        tiebreak = np.arange(scores.shape[0])
    # lexsort uses the last key as primary.
    order = np.lexsort((tiebreak, -scores))
    keep: List[int] = []
    limit = cfg.max_detections

    while order.size > 0 and (limit is None or len(keep) < limit):
        i = order[0]
        keep.append(int(i))

        xx1 = np.maximum(x1[i], x1[order[1:]])
        yy1 = np.maximum(y1[i], y1[order[1:]])
        xx2 = np.minimum(x2[i], x2[order[1:]])
        yy2 = np.minimum(y2[i], y2[order[1:]])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[order[1:]] - inter
        iou = inter / np.maximum(union, 1e-6)

        inds = np.where(iou <= cfg.iou_threshold)[0]
        order = order[inds + 1]

    return np.array(keep, dtype=np.int32)


def suppress(
    detections: Sequence[Detection],
    iou_threshold: float = 0.45,
    max_detections: Optional[int] = None,
) -> List[Detection]:
    """
    Per-label greedy NMS over decoded detections.

    Only detections sharing a label are compared. Within a label the higher
    confidence wins, and on equal confidence the lower candidate index wins.
    Survivors of all labels are merged best-first and capped at `max_detections`.
    """

    if not detections:
        return []

    groups: Dict[str, List[Detection]] = {}
    for det in detections:
        groups.setdefault(det.label, []).append(det)

    cfg = NMSConfig(iou_threshold=iou_threshold, max_detections=None)
    kept: List[Detection] = []
    for group in groups.values():
        boxes = np.array([d.as_xyxy() for d in group], dtype=np.float64)
        scores = np.array([d.confidence for d in group], dtype=np.float64)
        tiebreak = np.array([d.candidate_index for d in group], dtype=np.int64)
        keep_local = nms(boxes, scores, cfg, tiebreak=tiebreak)
        kept.extend(group[k] for k in keep_local)

    kept.sort(key=lambda d: (-d.confidence, d.candidate_index))
    if max_detections is not None:
        kept = kept[:max_detections]

    logger.debug("NMS kept %d of %d detections across %d labels", len(kept), len(detections), len(groups))
    return kept
