from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .letterbox import letterbox
from .metadata import ModelInfo
from .postprocess import YoloPostConfig, YoloPostprocessor
from .types import Classification, Detection, Segmentation

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
InferFn = Callable[[np.ndarray], Mapping[str, np.ndarray]]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery, used to resolve relative model paths.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    Relative paths are resolved against `root` if provided, otherwise against
    the project root.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


@dataclass(frozen=True)
class LetterboxConfig:
    color: Tuple[int, int, int] = (114, 114, 114)
    auto: bool = False
    scale_fill: bool = False
    scaleup: bool = True
    stride: int = 32


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]


@dataclass(frozen=True)
class InferenceResult:
    """
    Named output tensors of one forward pass and the size of the image they came from.
    """

    outputs: Dict[str, np.ndarray]
    image_size: Tuple[int, int]


class YoloPipeline:
    """
    Plug-and-play pipeline: preprocess (letterbox) -> inference -> postprocess.

    The pipeline expects BGR images (OpenCV-style) as `np.ndarray`. Every
    result is in original image coordinates.
    """

    def __init__(
        self,
        infer_fn: InferFn,
        model: ModelInfo,
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        letterbox_cfg: LetterboxConfig = LetterboxConfig(),
        post_cfg: YoloPostConfig = YoloPostConfig(),
    ):
        self._infer_fn = infer_fn
        self.model = model
        self.backend = backend
        self.backend_name = backend_name
        self.letterbox_cfg = letterbox_cfg
        self.post = YoloPostprocessor(model, post_cfg)

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        if image_bgr is None or not hasattr(image_bgr, "shape"):
            raise TypeError("image_bgr must be a NumPy array (BGR).")
        if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
            raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

        orig_h, orig_w = image_bgr.shape[:2]
        img, _, _ = letterbox(
            image_bgr,
            new_shape=(self.model.input_width, self.model.input_height),
            color=self.letterbox_cfg.color,
            auto=self.letterbox_cfg.auto,
            scale_fill=self.letterbox_cfg.scale_fill,
            scaleup=self.letterbox_cfg.scaleup,
            stride=self.letterbox_cfg.stride,
        )

        # BGR -> RGB, normalize, HWC -> CHW, add batch
        blob = img[:, :, ::-1].astype(np.float32) / 255.0
        blob = np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])

        return PreprocessResult(blob=blob, orig_size=(orig_w, orig_h))

    def run(self, image_bgr: np.ndarray) -> InferenceResult:
        prep = self.preprocess(image_bgr)
        outputs = dict(self._infer_fn(prep.blob))
        return InferenceResult(outputs=outputs, image_size=prep.orig_size)

    def classify(self, image_bgr: np.ndarray, top_k: int = 5) -> List[Classification]:
        return self.post.classify(self.run(image_bgr).outputs, top_k)

    def detect(self, image_bgr: np.ndarray, threshold: Optional[float] = None) -> List[Detection]:
        result = self.run(image_bgr)
        return self.post.detect(result.outputs, result.image_size, threshold)

    def segment(self, image_bgr: np.ndarray, threshold: Optional[float] = None) -> List[Segmentation]:
        """
        Detect and build masks from a single forward pass.
        """

        result = self.run(image_bgr)
        detections = self.post.detect(result.outputs, result.image_size, threshold)
        return self.post.segment(result.outputs, result.image_size, detections)

    def __call__(self, image_bgr: np.ndarray) -> List[Detection]:
        return self.detect(image_bgr)


def load_pipeline(
    model_path: PathLike,
    *,
    model: Optional[ModelInfo] = None,
    root: Optional[PathLike] = "auto",
    letterbox_cfg: LetterboxConfig = LetterboxConfig(),
    post_cfg: YoloPostConfig = YoloPostConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
) -> YoloPipeline:
    """
    Create a pipeline for an ONNX model on disk.

        pipe = load_pipeline("models/yolov8n-seg.onnx")

    Args:
        model_path: relative paths resolve against the project root by default
        model: labels / input size override; read from the ONNX metadata when None
    """

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    resolved = resolve_path(model_path, root=root)
    if resolved.suffix.lower() != ".onnx":
        raise ValueError(f"Only .onnx models are supported (got '{resolved.suffix}').")

    ort_backend = OnnxRuntimeBackend(
        resolved,
        OnnxRuntimeBackendConfig(providers=onnx_providers, input_name=onnx_input_name),
    )
    info = model if model is not None else ort_backend.model_info()
    logger.info(
        "Pipeline ready: %d labels, input %dx%d",
        info.num_classes,
        info.input_width,
        info.input_height,
    )
    return YoloPipeline(
        ort_backend.infer,
        info,
        backend=ort_backend,
        backend_name="onnxruntime",
        letterbox_cfg=letterbox_cfg,
        post_cfg=post_cfg,
    )
