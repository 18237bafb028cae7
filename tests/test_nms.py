import unittest

import numpy as np

from yolo_postproc.nms import NMSConfig, nms, suppress
from yolo_postproc.types import Detection, Rectangle


def _det(label, conf, rect, idx):
    return Detection(label=label, confidence=conf, rectangle=Rectangle(*rect), candidate_index=idx)


class TestNms(unittest.TestCase):
    def test_array_nms_keeps_best_of_overlapping(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [1, 1, 10, 10], [50, 50, 60, 60]], dtype=np.float32)
        scores = np.array([0.6, 0.9, 0.5], dtype=np.float32)
        keep = nms(boxes, scores, NMSConfig(iou_threshold=0.5))
        self.assertEqual(keep.tolist(), [1, 2])

    def test_array_nms_empty(self) -> None:
        keep = nms(np.zeros((0, 4), dtype=np.float32), np.zeros((0,), dtype=np.float32), NMSConfig())
        self.assertEqual(keep.shape, (0,))

    def test_array_nms_max_detections(self) -> None:
        boxes = np.array([[0, 0, 1, 1], [10, 10, 11, 11], [20, 20, 21, 21]], dtype=np.float32)
        scores = np.array([0.3, 0.2, 0.1], dtype=np.float32)
        keep = nms(boxes, scores, NMSConfig(iou_threshold=0.5, max_detections=2))
        self.assertEqual(keep.tolist(), [0, 1])


class TestSuppress(unittest.TestCase):
    def test_higher_confidence_survives(self) -> None:
        a = _det("car", 0.95, (0, 0, 100, 100), 0)
        b = _det("car", 0.80, (0, 0, 100, 90), 1)  # IoU 0.9
        self.assertAlmostEqual(a.rectangle.iou(b.rectangle), 0.9)
        self.assertEqual(suppress([b, a], iou_threshold=0.5), [a])

    def test_labels_are_suppressed_independently(self) -> None:
        a = _det("car", 0.95, (0, 0, 100, 100), 0)
        b = _det("truck", 0.80, (0, 0, 100, 100), 0)
        self.assertEqual(suppress([a, b], iou_threshold=0.5), [a, b])

    def test_iou_equal_to_threshold_is_kept(self) -> None:
        a = _det("car", 0.9, (0, 0, 10, 10), 0)
        b = _det("car", 0.8, (0, 0, 10, 5), 1)  # IoU exactly 0.5
        self.assertEqual(len(suppress([a, b], iou_threshold=0.5)), 2)

    def test_ties_prefer_lower_candidate_index(self) -> None:
        a = _det("car", 0.7, (0, 0, 10, 10), 5)
        b = _det("car", 0.7, (0, 0, 10, 10), 2)
        self.assertEqual(suppress([a, b], iou_threshold=0.5), [b])

    def test_empty_input(self) -> None:
        self.assertEqual(suppress([]), [])

    def test_max_detections_caps_merged_result(self) -> None:
        dets = [_det("car", 0.5 + i / 100, (i * 20, 0, 10, 10), i) for i in range(5)]
        kept = suppress(dets, max_detections=2)
        self.assertEqual([d.candidate_index for d in kept], [4, 3])

    def test_idempotent_and_survivors_do_not_overlap(self) -> None:
        rng = np.random.default_rng(11)
        labels = ["a", "b", "c"]
        dets = []
        for i in range(150):
            x, y = (int(v) for v in rng.integers(0, 80, size=2))
            w, h = (int(v) for v in rng.integers(5, 30, size=2))
            dets.append(_det(labels[i % 3], float(rng.random()), (x, y, w, h), i))

        once = suppress(dets, iou_threshold=0.45)
        twice = suppress(once, iou_threshold=0.45)
        self.assertEqual(once, twice)

        for i, p in enumerate(once):
            for q in once[i + 1:]:
                if p.label == q.label:
                    self.assertLessEqual(p.rectangle.iou(q.rectangle), 0.45)


if __name__ == "__main__":
    unittest.main()
