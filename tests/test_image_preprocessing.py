import io
import unittest

import numpy as np
from PIL import Image, ImageDraw

from slip_verifier.utils.image_preprocessing import normalize_image


def _slip(size=(400, 200)):
    img = Image.new('RGB', size, color='white')
    d = ImageDraw.Draw(img)
    d.rectangle((100, 60, 160, 120), fill='black')
    d.text((200, 80), "Paid: M1,200.50", fill='black')
    return img


class TestNormalizeImage(unittest.TestCase):
    def test_output_is_single_channel_binary(self):
        out = normalize_image(_slip())

        self.assertEqual(out.ndim, 2)
        self.assertEqual(out.dtype, np.uint8)
        self.assertEqual(out.shape, (200, 400))
        self.assertTrue(set(np.unique(out)).issubset({0, 255}))

    def test_dark_print_stays_dark_on_white_background(self):
        out = normalize_image(_slip())

        self.assertEqual(out[5, 5], 255)
        self.assertEqual(out[90, 130], 0)

    def test_fixed_threshold(self):
        # 100 * 1.3 * 1.1 = 143 -> black; 120 * 1.3 * 1.1 = 172 -> white
        dark = normalize_image(Image.new('L', (50, 50), color=100))
        light = normalize_image(Image.new('L', (50, 50), color=120))

        self.assertTrue((dark == 0).all())
        self.assertTrue((light == 255).all())

    def test_pixel_at_threshold_is_white(self):
        # 105 * 1.3 = 136.5 -> 136; 136 * 1.1 = 149.6 -> 150, exactly the threshold
        out = normalize_image(Image.new('L', (50, 50), color=105))
        self.assertTrue((out == 255).all())

        # 104 * 1.3 = 135.2 -> 135; 135 * 1.1 = 148.5 -> 148, just below
        out = normalize_image(Image.new('L', (50, 50), color=104))
        self.assertTrue((out == 0).all())

    def test_downscales_long_edge(self):
        out = normalize_image(_slip(size=(3000, 1000)), max_dimension=2400)
        self.assertEqual(out.shape, (800, 2400))
        self.assertTrue(set(np.unique(out)).issubset({0, 255}))

    def test_never_upscales(self):
        out = normalize_image(_slip(size=(100, 50)), max_dimension=2400)
        self.assertEqual(out.shape, (50, 100))

    def test_exif_orientation_applied(self):
        img = _slip(size=(200, 100))
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90 degrees clockwise on display
        buf = io.BytesIO()
        img.save(buf, format='JPEG', exif=exif)

        out = normalize_image(Image.open(io.BytesIO(buf.getvalue())))
        self.assertEqual(out.shape, (200, 100))

    def test_input_image_not_modified(self):
        img = _slip()
        before = np.array(img).copy()

        normalize_image(img)

        np.testing.assert_array_equal(np.array(img), before)

    def test_same_input_same_output(self):
        img = _slip()
        np.testing.assert_array_equal(normalize_image(img), normalize_image(img))


if __name__ == "__main__":
    unittest.main()
