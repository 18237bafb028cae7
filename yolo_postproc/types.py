from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from .errors import InvalidDimensions


@dataclass(frozen=True)
class ImageDimensions:
    """
    Source image size and the network's fixed input size, in pixels.
    """

    image_width: int
    image_height: int
    input_width: int
    input_height: int

    def __post_init__(self) -> None:
        for name in ("image_width", "image_height", "input_width", "input_height"):
            if getattr(self, name) <= 0:
                raise InvalidDimensions(f"{name} must be > 0 (got {getattr(self, name)})")

    @property
    def image_size(self) -> Tuple[int, int]:
        return self.image_width, self.image_height

    @property
    def input_size(self) -> Tuple[int, int]:
        return self.input_width, self.input_height


@dataclass(frozen=True)
class Rectangle:
    """
    Integer box in image pixels: top-left corner plus width/height.
    """

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_xyxy(cls, x1: int, y1: int, x2: int, y2: int) -> "Rectangle":
        return cls(int(x1), int(y1), int(x2) - int(x1), int(y2) - int(y1))

    @property
    def area(self) -> int:
        return max(0, self.width) * max(0, self.height)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.x + self.width, self.y + self.height

    def iou(self, other: "Rectangle") -> float:
        ax1, ay1, ax2, ay2 = self.as_xyxy()
        bx1, by1, bx2, by2 = other.as_xyxy()
        inter = max(0, min(ax2, bx2) - max(ax1, bx1)) * max(0, min(ay2, by2) - max(ay1, by1))
        union = self.area + other.area - inter
        if union <= 0:
            return 0.0
        return inter / union


@dataclass(frozen=True)
class Classification:
    label: str
    confidence: float


@dataclass(frozen=True)
class Detection:
    """
    One (candidate, class) pair that cleared the confidence threshold.

    `candidate_index` is the position along the candidate axis of the detection
    tensor this box was decoded from; mask coefficients are looked up with it.
    """

    label: str
    confidence: float
    rectangle: Rectangle
    candidate_index: int
    class_id: Optional[int] = None

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        return self.rectangle.as_xyxy()


@dataclass(frozen=True)
class Segmentation:
    """
    A detection plus its per-pixel foreground confidence grid.

    `mask` has shape (rectangle.height, rectangle.width); background pixels are 0.
    """

    detection: Detection
    mask: np.ndarray = field(repr=False, compare=False)

    @property
    def label(self) -> str:
        return self.detection.label

    @property
    def confidence(self) -> float:
        return self.detection.confidence

    @property
    def rectangle(self) -> Rectangle:
        return self.detection.rectangle

    def binary_mask(self) -> np.ndarray:
        return self.mask > 0
