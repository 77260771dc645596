import io
import os
import tempfile
import unittest

from PIL import Image

from slip_verifier.core.errors import (
    DocumentTooLargeError,
    ImageDecodeError,
    UnsupportedDocumentError,
)
from slip_verifier.core.image_loader import (
    check_document_size,
    decode_document,
    detect_format,
    load_images_from_folder,
    read_document,
)


def _encode(fmt, size=(120, 60)):
    img = Image.new('RGB', size, color='white')
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


class TestFormatDetection(unittest.TestCase):
    def test_known_signatures(self):
        self.assertEqual(detect_format(_encode('PNG')), 'png')
        self.assertEqual(detect_format(_encode('JPEG')), 'jpeg')
        self.assertEqual(detect_format(b'%PDF-1.7\n...'), 'pdf')

    def test_other_formats_rejected(self):
        for data in (_encode('GIF'), _encode('BMP'), b'hello world'):
            with self.assertRaises(UnsupportedDocumentError):
                detect_format(data)

    def test_unsupported_is_a_decode_error(self):
        self.assertTrue(issubclass(UnsupportedDocumentError, ImageDecodeError))
        self.assertTrue(issubclass(DocumentTooLargeError, ImageDecodeError))


class TestSizeBound(unittest.TestCase):
    def test_empty_rejected(self):
        with self.assertRaises(ImageDecodeError):
            check_document_size(b'')

    def test_oversized_rejected(self):
        with self.assertRaises(DocumentTooLargeError) as ctx:
            check_document_size(b'x' * 11, max_bytes=10)
        self.assertEqual(ctx.exception.size, 11)
        self.assertEqual(ctx.exception.limit, 10)

    def test_at_limit_accepted(self):
        check_document_size(b'x' * 10, max_bytes=10)

    def test_default_limit_is_ten_mib(self):
        check_document_size(b'x' * (10 * 1024 * 1024))
        with self.assertRaises(DocumentTooLargeError):
            check_document_size(b'x' * (10 * 1024 * 1024 + 1))


class TestDecode(unittest.TestCase):
    def test_png_and_jpeg(self):
        for fmt in ('PNG', 'JPEG'):
            img = decode_document(_encode(fmt))
            self.assertEqual(img.size, (120, 60))

    def test_pdf_first_page_rendered(self):
        img = decode_document(_encode('PDF', size=(144, 72)), pdf_dpi=144)

        self.assertEqual(img.mode, 'RGB')
        # Pillow writes PDFs at 72 dpi, so rendering at 144 dpi doubles the size
        self.assertAlmostEqual(img.size[0], 288, delta=2)
        self.assertAlmostEqual(img.size[1], 144, delta=2)

    def test_truncated_png(self):
        with self.assertRaises(ImageDecodeError):
            decode_document(_encode('PNG')[:40])

    def test_broken_pdf(self):
        with self.assertRaises(ImageDecodeError):
            decode_document(b'%PDF-1.4\nthis is not a real pdf')


class TestFileHelpers(unittest.TestCase):
    def test_read_document(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'slip.png')
            with open(path, 'wb') as f:
                f.write(b'abc')
            self.assertEqual(read_document(path), b'abc')

    def test_read_missing_document(self):
        with self.assertRaises(ImageDecodeError):
            read_document('/nonexistent/slip.png')

    def test_folder_scan(self):
        with tempfile.TemporaryDirectory() as tmp:
            os.makedirs(os.path.join(tmp, 'sub'))
            for name in ('a.png', 'b.PDF', 'notes.txt', os.path.join('sub', 'c.jpg')):
                with open(os.path.join(tmp, name), 'wb') as f:
                    f.write(b'x')

            found = load_images_from_folder(tmp)

        self.assertEqual(
            [os.path.relpath(p, tmp) for p in found],
            ['a.png', 'b.PDF', os.path.join('sub', 'c.jpg')],
        )


if __name__ == "__main__":
    unittest.main()
