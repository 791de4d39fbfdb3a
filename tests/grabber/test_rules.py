import unittest

from src.grabber.domain.rules import (
    base36_to_hex,
    file_storage_key,
    hex_to_base36,
    ip_to_hex,
    is_fandom_comment_title,
    is_infinity,
    is_valid_username,
    one_second_before,
    parse_timestamp,
    prefixed_db_key,
    sanitise_title,
    sha1_base36,
    to_mw_timestamp,
)

EMPTY_SHA1_HEX = "da39a3ee5e6b4b0d3255bfef95601890afd80709"


class ChecksumRuleTests(unittest.TestCase):
    def test_sha1_of_empty_text_matches_mediawiki_form(self):
        self.assertEqual(sha1_base36(""), "phoiac9h4m842xq45sp7s6u21eteeq1")

    def test_base36_and_hex_convert_both_ways(self):
        self.assertEqual(base36_to_hex(sha1_base36("")), EMPTY_SHA1_HEX)
        self.assertEqual(hex_to_base36(EMPTY_SHA1_HEX), sha1_base36(""))
        self.assertIsNone(base36_to_hex(None))
        self.assertIsNone(hex_to_base36(""))

    def test_storage_key_uses_extension_aliases(self):
        jpeg = file_storage_key(EMPTY_SHA1_HEX, "Photo.JPEG")
        jpg = file_storage_key(EMPTY_SHA1_HEX, "Other.jpg")
        self.assertEqual(jpeg, jpg)
        self.assertTrue(jpeg.endswith(".jpg"))
        self.assertTrue(file_storage_key(EMPTY_SHA1_HEX, "Clip.ogv").endswith(".ogg"))


class TimestampRuleTests(unittest.TestCase):
    def test_mediawiki_and_iso_forms_are_equivalent(self):
        self.assertEqual(parse_timestamp("20200102030405"), parse_timestamp("2020-01-02T03:04:05Z"))
        self.assertEqual(to_mw_timestamp("2020-01-02T03:04:05Z"), "20200102030405")

    def test_resume_point_moves_back_one_second(self):
        self.assertEqual(one_second_before("20200101000000"), "2019-12-31T23:59:59Z")

    def test_invalid_timestamp_raises(self):
        with self.assertRaises(ValueError):
            parse_timestamp("yesterday")

    def test_infinity_spellings(self):
        for value in ("infinity", "infinite", "Indefinite", "never"):
            self.assertTrue(is_infinity(value))
        self.assertFalse(is_infinity("20300101000000"))


class NameRuleTests(unittest.TestCase):
    def test_ip_to_hex(self):
        self.assertEqual(ip_to_hex("127.0.0.1"), "7F000001")
        self.assertEqual(ip_to_hex("::1"), "v6-" + "0" * 31 + "1")
        self.assertIsNone(ip_to_hex("Alice"))

    def test_valid_usernames(self):
        self.assertTrue(is_valid_username("Alice"))
        self.assertFalse(is_valid_username("alice"))
        self.assertFalse(is_valid_username("10.0.0.1"))
        self.assertFalse(is_valid_username("Foo|Bar"))
        self.assertFalse(is_valid_username(""))

    def test_sanitise_title_strips_namespace_outside_main(self):
        self.assertEqual(sanitise_title(0, "Main Page"), "Main_Page")
        self.assertEqual(sanitise_title(0, "Ratio: 1:2"), "Ratio:_1:2")
        self.assertEqual(sanitise_title(2, "User:Some body"), "Some_body")

    def test_prefixed_db_key(self):
        names = {0: "", 2: "User", 500: "User blog"}
        self.assertEqual(prefixed_db_key(0, "Foo bar", names), "Foo_bar")
        self.assertEqual(prefixed_db_key(500, "Post", names), "User_blog:Post")

    def test_fandom_comment_titles(self):
        self.assertTrue(is_fandom_comment_title("Article/@comment-Someone-20200101000000"))
        self.assertFalse(is_fandom_comment_title("Article/Subpage"))
