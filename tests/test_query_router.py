import base64
import unittest

from genterm.errors import ConversionError
from genterm.query_router import (
    ImageQuery,
    TextQuery,
    build_message_content,
    image_candidates,
    image_to_base64,
    route,
)
from genterm.uploads import UploadedFile

PNG_BYTES = b"\x89PNG\r\n\x1a\n fake image body"


def _file(name: str, data: bytes = b"x", mime_type: str | None = None) -> UploadedFile:
    return UploadedFile.from_bytes(name, data, mime_type=mime_type)


class TestQueryRouter(unittest.TestCase):
    def test_image_keyword_with_image_selects_image_route(self):
        photo = _file("photo.jpg", mime_type="image/jpeg")
        decision = route("describe this image", [photo])
        self.assertEqual(decision, ImageQuery(query="describe this image", image=photo))

    def test_no_keyword_selects_text_route(self):
        photo = _file("photo.jpg", mime_type="image/jpeg")
        self.assertEqual(route("what is 2+2", [photo]), TextQuery(query="what is 2+2"))

    def test_keyword_without_images_selects_text_route(self):
        notes = _file("notes.txt", mime_type="text/plain")
        self.assertIsInstance(route("is there an image here?", [notes]), TextQuery)

    def test_keyword_match_is_case_insensitive_substring(self):
        photo = _file("photo.png", mime_type="image/png")
        self.assertIsInstance(route("Explain these IMAGES", [photo]), ImageQuery)

    def test_most_recent_image_is_selected(self):
        first = _file("first.png", mime_type="image/png")
        notes = _file("notes.txt", mime_type="text/plain")
        second = _file("second.jpeg", mime_type="image/jpeg")
        decision = route("compare the image", [first, second, notes])
        self.assertIs(decision.image, second)

    def test_candidates_by_type_or_suffix(self):
        files = [
            _file("a.PNG", mime_type=""),
            _file("b", mime_type="image/gif"),
            _file("c.pdf", mime_type="application/pdf"),
            _file("d.jpg.txt", mime_type="text/plain"),
        ]
        self.assertEqual([f.name for f in image_candidates(files)], ["a.PNG", "b"])

    def test_message_content_shape(self):
        content = build_message_content("what is in the image", "QUJD")
        self.assertEqual(
            content,
            [
                {"type": "text", "text": "what is in the image"},
                {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,QUJD"}},
            ],
        )


class TestImageConversion(unittest.IsolatedAsyncioTestCase):
    async def test_image_bytes_are_base64_encoded(self):
        payload = await image_to_base64(_file("photo.png", PNG_BYTES, "image/png"))
        self.assertEqual(base64.b64decode(payload), PNG_BYTES)

    async def test_non_image_type_is_rejected(self):
        with self.assertRaises(ConversionError):
            await image_to_base64(_file("photo.png", PNG_BYTES, "application/octet-stream"))

    async def test_empty_image_is_rejected(self):
        with self.assertRaises(ConversionError):
            await image_to_base64(_file("empty.png", b"", "image/png"))


if __name__ == "__main__":
    unittest.main()
