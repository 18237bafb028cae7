import unittest

import numpy as np

from yolo_postproc.errors import InvalidModelOutput
from yolo_postproc.metadata import ModelInfo
from yolo_postproc.postprocess import YoloPostConfig, YoloPostprocessor
from yolo_postproc.runtime import YoloPipeline
from yolo_postproc.types import Rectangle


MODEL = ModelInfo(labels=("cat", "dog"), input_width=100, input_height=100, output_names=("output0", "output1"))


def _seg_outputs():
    # Columns: cx, cy, w, h, cat, dog, coeff0, coeff1
    candidates = [
        [50, 50, 20, 20, 0.9, 0.1, 0.0, 0.0],
        [51, 50, 20, 20, 0.8, 0.0, 0.0, 0.0],  # overlaps candidate 0
        [20, 20, 10, 10, 0.0, 0.7, 0.0, 0.0],
    ]
    det = np.array(candidates, dtype=np.float32).T[None, ...]
    protos = np.zeros((1, 2, 25, 25), dtype=np.float32)
    return {"output0": det, "output1": protos}


class TestYoloPostprocessor(unittest.TestCase):
    def test_detect_decodes_and_suppresses(self) -> None:
        post = YoloPostprocessor(MODEL, YoloPostConfig(conf_threshold=0.5, iou_threshold=0.5))
        dets = post.detect(_seg_outputs(), (100, 100))

        self.assertEqual([d.label for d in dets], ["cat", "dog"])
        self.assertEqual([d.candidate_index for d in dets], [0, 2])
        self.assertEqual(dets[0].rectangle, Rectangle(40, 40, 20, 20))
        self.assertEqual(dets[1].rectangle, Rectangle(15, 15, 10, 10))
        self.assertAlmostEqual(dets[0].confidence, 0.9, places=6)

    def test_threshold_override(self) -> None:
        post = YoloPostprocessor(MODEL, YoloPostConfig(conf_threshold=0.5))
        dets = post.detect(_seg_outputs(), (100, 100), threshold=0.75)
        self.assertEqual([d.label for d in dets], ["cat"])

    def test_segment_builds_mask_per_detection(self) -> None:
        post = YoloPostprocessor(MODEL, YoloPostConfig(conf_threshold=0.5))
        outputs = _seg_outputs()
        dets = post.detect(outputs, (100, 100))
        segs = post.segment(outputs, (100, 100), dets)

        self.assertEqual([s.detection for s in segs], dets)
        self.assertEqual(segs[0].mask.shape, (20, 20))
        self.assertEqual(segs[1].mask.shape, (10, 10))
        for s in segs:
            self.assertTrue(np.allclose(s.mask, 128 / 255))

    def test_classify_uses_first_output(self) -> None:
        post = YoloPostprocessor(MODEL)
        result = post.classify({"output0": np.array([[0.2, 0.8]], dtype=np.float32)}, top_k=1)
        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].label, "dog")

    def test_missing_outputs_raise(self) -> None:
        post = YoloPostprocessor(MODEL)
        outputs = _seg_outputs()
        del outputs["output1"]
        with self.assertRaises(InvalidModelOutput):
            post.segment(outputs, (100, 100), [])
        with self.assertRaises(InvalidModelOutput):
            post.detect({}, (100, 100))

        single = YoloPostprocessor(ModelInfo(labels=("cat", "dog"), input_width=100, input_height=100, output_names=("output0",)))
        with self.assertRaises(InvalidModelOutput):
            single.segment(_seg_outputs(), (100, 100), [])

    def test_config_validation(self) -> None:
        with self.assertRaises(ValueError):
            YoloPostConfig(conf_threshold=1.5)
        with self.assertRaises(ValueError):
            YoloPostConfig(mask_interpolation="cubic")
        with self.assertRaises(ValueError):
            YoloPostConfig(mask_workers=0)
        with self.assertRaises(ValueError):
            YoloPostConfig(mask_threshold=300)


class TestYoloPipeline(unittest.TestCase):
    def test_pipeline_feeds_letterboxed_blob_and_segments(self) -> None:
        seen = {}

        def infer(blob: np.ndarray):
            seen["shape"] = blob.shape
            seen["dtype"] = blob.dtype
            return _seg_outputs()

        pipe = YoloPipeline(infer, MODEL, post_cfg=YoloPostConfig(conf_threshold=0.5))
        image = np.zeros((100, 100, 3), dtype=np.uint8)

        segs = pipe.segment(image)
        self.assertEqual(seen["shape"], (1, 3, 100, 100))
        self.assertEqual(seen["dtype"], np.float32)
        self.assertEqual([s.label for s in segs], ["cat", "dog"])
        self.assertEqual([d.label for d in pipe(image)], ["cat", "dog"])

    def test_pipeline_rejects_non_bgr(self) -> None:
        pipe = YoloPipeline(lambda blob: {}, MODEL)
        with self.assertRaises(ValueError):
            pipe.detect(np.zeros((10, 10), dtype=np.uint8))


if __name__ == "__main__":
    unittest.main()
