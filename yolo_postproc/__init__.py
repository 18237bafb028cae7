"""
YOLO output post-processing: classification ranking, box decoding, per-class
NMS and prototype-mask reconstruction.

Framework-agnostic: works on NumPy arrays emitted by ONNX Runtime or any other
engine. Core dependencies are NumPy and OpenCV (mask resampling, letterboxing).
"""

from .types import Classification, Detection, ImageDimensions, Rectangle, Segmentation
from .errors import InvalidDimensions, InvalidModelOutput, PostprocessError
from .tensors import TensorView
from .letterbox import LetterboxMapping, letterbox
from .classify import classify
from .decode import decode_boxes
from .nms import NMSConfig, nms, suppress
from .masks import reconstruct_masks, sigmoid
from .metadata import ModelInfo, load_class_names, load_model_info, parse_names
from .postprocess import YoloPostprocessor, YoloPostConfig
from .runtime import YoloPipeline, load_pipeline, find_project_root, resolve_path, LetterboxConfig
from .visualize import draw_detections, draw_segmentations

__all__ = [
    "Classification",
    "Detection",
    "ImageDimensions",
    "Rectangle",
    "Segmentation",
    "InvalidDimensions",
    "InvalidModelOutput",
    "PostprocessError",
    "TensorView",
    "LetterboxMapping",
    "letterbox",
    "classify",
    "decode_boxes",
    "NMSConfig",
    "nms",
    "suppress",
    "reconstruct_masks",
    "sigmoid",
    "ModelInfo",
    "load_class_names",
    "load_model_info",
    "parse_names",
    "YoloPostprocessor",
    "YoloPostConfig",
    "YoloPipeline",
    "load_pipeline",
    "find_project_root",
    "resolve_path",
    "LetterboxConfig",
    "draw_detections",
    "draw_segmentations",
]
