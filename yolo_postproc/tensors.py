from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from .errors import InvalidModelOutput


DETECTION_AXES = ("batch", "channel", "candidate")
PROTOTYPE_AXES = ("batch", "channel", "row", "column")


class TensorView:
    """
    Read-only float32 view over a model output with named axes.

    Scalar access goes through `__getitem__`, which is bounds-checked and raises
    InvalidModelOutput instead of wrapping around like NumPy negative indexing.
    Vectorized consumers use `.array`, which is marked non-writeable.
    """

    def __init__(self, array: np.ndarray, axes: Sequence[str], name: str = "tensor"):
        arr = np.asarray(array, dtype=np.float32)
        if arr.ndim != len(axes):
            raise InvalidModelOutput(
                f"{name}: expected rank {len(axes)} {tuple(axes)}, got shape {arr.shape}"
            )
        arr = arr.view()
        arr.flags.writeable = False
        self._array = arr
        self.axes: Tuple[str, ...] = tuple(axes)
        self.name = name

    @classmethod
    def detections(cls, array: np.ndarray, name: str = "detections") -> "TensorView":
        return cls(array, DETECTION_AXES, name=name)

    @classmethod
    def prototypes(cls, array: np.ndarray, name: str = "prototypes") -> "TensorView":
        return cls(array, PROTOTYPE_AXES, name=name)

    @classmethod
    def scores(cls, array: np.ndarray, name: str = "scores") -> "TensorView":
        # Classification heads export (C,) or (1, C).
        arr = np.asarray(array, dtype=np.float32)
        if arr.ndim == 2 and arr.shape[0] == 1:
            arr = arr[0]
        return cls(arr, ("class",), name=name)

    @property
    def array(self) -> np.ndarray:
        return self._array

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(int(s) for s in self._array.shape)

    def __len__(self) -> int:
        return self.shape[0]

    def extent(self, axis: str) -> int:
        try:
            return self.shape[self.axes.index(axis)]
        except ValueError:
            raise InvalidModelOutput(f"{self.name}: no axis named {axis!r} in {self.axes}") from None

    def require_extent(self, axis: str, minimum: int) -> None:
        size = self.extent(axis)
        if size < minimum:
            raise InvalidModelOutput(
                f"{self.name}: axis {axis!r} has extent {size}, need at least {minimum}"
            )

    def __getitem__(self, index) -> float:
        if not isinstance(index, tuple):
            index = (index,)
        if len(index) != len(self.axes):
            raise InvalidModelOutput(
                f"{self.name}: expected {len(self.axes)} indices {self.axes}, got {len(index)}"
            )
        for axis, i, size in zip(self.axes, index, self.shape):
            if not 0 <= int(i) < size:
                raise InvalidModelOutput(f"{self.name}: {axis} index {i} out of range [0, {size})")
        return float(self._array[tuple(int(i) for i in index)])

    def __repr__(self) -> str:
        dims = ", ".join(f"{a}={s}" for a, s in zip(self.axes, self.shape))
        return f"TensorView({self.name}: {dims})"
