from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import InvalidDimensions
from .types import ImageDimensions


@dataclass(frozen=True)
class LetterboxMapping:
    """
    Scale/offset between network input space and original image space.

    gain:  factor that scales input-space lengths back up to image space
           (max of the per-axis image/input ratios)
    ratio: letterbox resize ratio applied at pre-processing (min of input/image)
    pad:   (x_pad, y_pad) padding added on each side of the resized image

    gain and ratio are kept as two separate quantities on purpose; box decoding
    uses `gain`, padding uses `ratio`. For non-square inputs they are not exact
    reciprocals.
    """

    gain: float
    ratio: float
    x_pad: float
    y_pad: float
    dims: ImageDimensions

    @classmethod
    def from_dimensions(
        cls,
        image_width: int,
        image_height: int,
        input_width: int,
        input_height: int,
        *,
        integer_padding: bool = False,
    ) -> "LetterboxMapping":
        """
        Args:
            integer_padding: truncate padding to whole pixels the way the
                original exporter tooling did: int(input - image * ratio) // 2
        """

        for name, value in (
            ("image_width", image_width),
            ("image_height", image_height),
            ("input_width", input_width),
            ("input_height", input_height),
        ):
            if value is None or value <= 0:
                raise InvalidDimensions(f"{name} must be > 0 (got {value})")

        dims = ImageDimensions(int(image_width), int(image_height), int(input_width), int(input_height))
        gain = max(image_width / input_width, image_height / input_height)
        ratio = min(input_width / image_width, input_height / image_height)

        if integer_padding:
            x_pad = float(int(input_width - image_width * ratio) // 2)
            y_pad = float(int(input_height - image_height * ratio) // 2)
        else:
            x_pad = (input_width - image_width * ratio) / 2
            y_pad = (input_height - image_height * ratio) / 2

        return cls(gain=float(gain), ratio=float(ratio), x_pad=float(x_pad), y_pad=float(y_pad), dims=dims)

    @property
    def pad(self) -> Tuple[float, float]:
        return self.x_pad, self.y_pad

    def to_image(self, x: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Input-space coordinates -> image-space coordinates (unclamped)."""
        return (x - self.x_pad) * self.gain, (y - self.y_pad) * self.gain

    def to_input(self, x: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Image-space coordinates -> input-space coordinates; inverse of `to_image`."""
        return x / self.gain + self.x_pad, y / self.gain + self.y_pad


def letterbox(
    image: np.ndarray,
    new_shape: Tuple[int, int] = (640, 640),
    color: Tuple[int, int, int] = (114, 114, 114),
    auto: bool = False,
    scale_fill: bool = False,
    scaleup: bool = True,
    stride: int = 32,
):
    """
    Resize and pad image to the network input size, matching common YOLO exports.

    Returns:
        padded: resized + padded image
        ratio: (w_ratio, h_ratio)
        pad: (dw, dh) padding applied to width/height (left/top only; right/bottom equal)
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    h, w = image.shape[:2]
    if isinstance(new_shape, int):
        new_shape = (new_shape, new_shape)
    new_w, new_h = new_shape
    if w <= 0 or h <= 0 or new_w <= 0 or new_h <= 0:
        raise InvalidDimensions(f"Cannot letterbox {w}x{h} into {new_w}x{new_h}")

    r = min(new_w / w, new_h / h)
    if not scaleup:  # only scale down
        r = min(r, 1.0)

    ratio = (r, r)
    resized_w, resized_h = int(round(w * r)), int(round(h * r))
    dw, dh = new_w - resized_w, new_h - resized_h

    if auto:  # padding to a stride multiple
        dw %= stride
        dh %= stride
    elif scale_fill:
        resized_w, resized_h = new_w, new_h
        dw, dh = 0.0, 0.0
        ratio = (new_w / w, new_h / h)

    dw /= 2
    dh /= 2

    if (w, h) != (resized_w, resized_h):
        image = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

    top, bottom = int(round(dh - 0.1)), int(round(dh + 0.1))
    left, right = int(round(dw - 0.1)), int(round(dw + 0.1))
    padded = cv2.copyMakeBorder(image, top, bottom, left, right, cv2.BORDER_CONSTANT, value=color)

    return padded, ratio, (dw, dh)
