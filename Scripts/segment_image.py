import argparse
import logging

import cv2

from yolo_postproc import YoloPostConfig, draw_segmentations, load_model_info, load_pipeline
from yolo_postproc.log import setup_logging

logger = logging.getLogger("segment_image")


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a YOLO segmentation model and visualize boxes + masks.")
    parser.add_argument("--image", required=True, help="Path to an input image.")
    parser.add_argument("--model", default="Models/yolov8n-seg.onnx", help="Path to an ONNX segmentation model.")
    parser.add_argument(
        "--metadata",
        default=None,
        help="Optional class metadata (names mapping); otherwise labels come from the ONNX metadata.",
    )
    parser.add_argument("--imgsz", type=int, default=640, help="Model input size, used with --metadata.")
    parser.add_argument("--conf", type=float, default=0.25, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for NMS.")
    parser.add_argument("--bilinear", action="store_true", help="Bilinear mask resampling (default nearest).")
    parser.add_argument("--workers", type=int, default=None, help="Threads for mask reconstruction.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--out", default=None, help="Optional output path for the visualization.")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, ...).")
    args = parser.parse_args()

    setup_logging(args.log_level)

    if args.imgsz < 32:
        raise ValueError("--imgsz must be >= 32")
    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]

    model = load_model_info(args.metadata, (args.imgsz, args.imgsz)) if args.metadata else None
    pipeline = load_pipeline(
        model_path=args.model,
        model=model,
        post_cfg=YoloPostConfig(
            conf_threshold=args.conf,
            iou_threshold=args.iou,
            mask_interpolation="bilinear" if args.bilinear else "nearest",
            mask_workers=args.workers,
        ),
        onnx_providers=onnx_providers,
    )

    img = cv2.imread(args.image)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {args.image}")

    segmentations = pipeline.segment(img)
    for seg in segmentations:
        fg = int(seg.binary_mask().sum())
        logger.info("%s %.3f %s foreground_px=%d", seg.label, seg.confidence, seg.rectangle.as_xyxy(), fg)

    if args.out:
        vis = draw_segmentations(img, segmentations)
        ok = cv2.imwrite(args.out, vis)
        if not ok:
            raise RuntimeError(f"Failed to write output image: {args.out}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
