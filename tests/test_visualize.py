import unittest

import numpy as np

from yolo_postproc.types import Detection, Rectangle, Segmentation
from yolo_postproc.visualize import draw_detections, draw_segmentations


class TestVisualize(unittest.TestCase):
    def _segmentation(self) -> Segmentation:
        det = Detection(label="cat", confidence=0.9, rectangle=Rectangle(10, 10, 20, 20), candidate_index=0, class_id=0)
        mask = np.zeros((20, 20), dtype=np.float32)
        mask[5:15, 5:15] = 0.9
        return Segmentation(detection=det, mask=mask)

    def test_draw_segmentations_tints_only_foreground(self) -> None:
        image = np.zeros((64, 64, 3), dtype=np.uint8)
        out = draw_segmentations(image, [self._segmentation()], draw_boxes=False)
        self.assertEqual(out.shape, image.shape)
        self.assertTrue(np.any(out[15:25, 15:25] > 0))
        self.assertTrue(np.all(out[10:15, 10:30] == 0))
        self.assertTrue(np.all(image == 0))

    def test_draw_detections_returns_copy(self) -> None:
        image = np.zeros((64, 64, 3), dtype=np.uint8)
        out = draw_detections(image, [self._segmentation().detection])
        self.assertTrue(np.any(out > 0))
        self.assertTrue(np.all(image == 0))

    def test_rejects_grayscale(self) -> None:
        with self.assertRaises(ValueError):
            draw_segmentations(np.zeros((8, 8), dtype=np.uint8), [])


if __name__ == "__main__":
    unittest.main()
