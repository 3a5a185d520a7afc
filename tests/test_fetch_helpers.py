import unittest

from asset_mirror.fetch.fetcher import parse_max_age
from asset_mirror.fetch.sniffer import type_from_content_type, type_from_path


class TypeFromPathTests(unittest.TestCase):
    def test_known_extensions(self) -> None:
        self.assertEqual(type_from_path("https://cdn.example/fonts/a.WOFF2?v=3"), "woff2")
        self.assertEqual(type_from_path("https://cdn.example/a.jpeg#x"), "jpeg")
        self.assertEqual(type_from_path("https://cdn.example/lib.min.js"), "js")

    def test_inconclusive_paths(self) -> None:
        self.assertIsNone(type_from_path("https://fonts.example/css2?family=Inter"))
        self.assertIsNone(type_from_path("https://cdn.example/"))
        self.assertIsNone(type_from_path("https://cdn.example/icon.svg"))


class TypeFromContentTypeTests(unittest.TestCase):
    def test_parameters_and_case_are_ignored(self) -> None:
        self.assertEqual(type_from_content_type("Text/CSS; charset=utf-8"), "css")
        self.assertEqual(type_from_content_type("image/jpeg"), "jpg")
        self.assertEqual(type_from_content_type("application/javascript"), "js")

    def test_unknown(self) -> None:
        self.assertIsNone(type_from_content_type(None))
        self.assertIsNone(type_from_content_type("application/octet-stream"))


class ParseMaxAgeTests(unittest.TestCase):
    def test_max_age(self) -> None:
        self.assertEqual(parse_max_age("public, max-age=31536000, immutable"), 31536000)
        self.assertEqual(parse_max_age("max-age=600"), 600)
        self.assertEqual(parse_max_age('private, max-age="120"'), 120)

    def test_missing_or_non_positive(self) -> None:
        self.assertIsNone(parse_max_age(None))
        self.assertIsNone(parse_max_age("no-cache"))
        self.assertIsNone(parse_max_age("max-age=0"))
        self.assertIsNone(parse_max_age("s-maxage=600"))


if __name__ == "__main__":
    unittest.main()
