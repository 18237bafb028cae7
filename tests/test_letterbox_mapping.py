import unittest

from yolo_postproc.errors import InvalidDimensions
from yolo_postproc.letterbox import LetterboxMapping
from yolo_postproc.types import ImageDimensions


class TestLetterboxMapping(unittest.TestCase):
    def test_same_size_is_identity(self) -> None:
        m = LetterboxMapping.from_dimensions(100, 100, 100, 100)
        self.assertEqual(m.gain, 1.0)
        self.assertEqual(m.ratio, 1.0)
        self.assertEqual(m.pad, (0.0, 0.0))

    def test_wide_image_pads_vertically(self) -> None:
        m = LetterboxMapping.from_dimensions(200, 100, 100, 100)
        self.assertAlmostEqual(m.gain, 2.0)
        self.assertAlmostEqual(m.ratio, 0.5)
        self.assertAlmostEqual(m.x_pad, 0.0)
        self.assertAlmostEqual(m.y_pad, 25.0)

    def test_gain_and_ratio_are_computed_independently(self) -> None:
        # Non-square input: gain is not 1 / ratio.
        m = LetterboxMapping.from_dimensions(100, 100, 200, 100)
        self.assertAlmostEqual(m.gain, 1.0)
        self.assertAlmostEqual(m.ratio, 1.0)
        self.assertAlmostEqual(m.x_pad, 50.0)
        self.assertAlmostEqual(m.y_pad, 0.0)

    def test_integer_padding_truncates(self) -> None:
        exact = LetterboxMapping.from_dimensions(300, 100, 64, 64)
        truncated = LetterboxMapping.from_dimensions(300, 100, 64, 64, integer_padding=True)
        self.assertAlmostEqual(exact.y_pad, (64 - 100 * 64 / 300) / 2)
        self.assertEqual(truncated.y_pad, 21.0)
        self.assertEqual(truncated.x_pad, 0.0)

    def test_round_trip_between_spaces(self) -> None:
        m = LetterboxMapping.from_dimensions(640, 480, 320, 320)
        ix, iy = m.to_input(123.0, 45.0)
        x, y = m.to_image(ix, iy)
        self.assertAlmostEqual(x, 123.0)
        self.assertAlmostEqual(y, 45.0)

    def test_zero_or_negative_dimensions_raise(self) -> None:
        with self.assertRaises(InvalidDimensions):
            LetterboxMapping.from_dimensions(0, 100, 100, 100)
        with self.assertRaises(InvalidDimensions):
            LetterboxMapping.from_dimensions(100, 100, 100, -1)
        with self.assertRaises(InvalidDimensions):
            ImageDimensions(10, 0, 10, 10)

    def test_invalid_dimensions_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            LetterboxMapping.from_dimensions(100, 0, 100, 100)


if __name__ == "__main__":
    unittest.main()
