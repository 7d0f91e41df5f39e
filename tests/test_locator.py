"""Tests for the packed item URL / secure note field."""

import pytest

from citadel_vault.vault.locator import ItemLocator, LocatorFormat, decode_locator, encode_locator


class TestItemLocator:

    def test_encode_format(self):
        assert encode_locator("http://a.com", "note") == '{"url":"http://a.com","secureNote":"bm90ZQ=="}'

    def test_round_trip_multiline_note(self):
        raw = encode_locator("https://mybank.com", "credit card pin:\n1234")
        locator = decode_locator(raw)
        assert locator.url == "https://mybank.com"
        assert locator.secure_note == "credit card pin:\n1234"
        assert locator.format is LocatorFormat.JSON

    def test_unicode_note(self):
        locator = decode_locator(encode_locator("u", "clé √"))
        assert locator.secure_note == "clé √"

    def test_legacy_separator(self):
        raw = '{"url":"http://old.example"|||"secureNote":"aGk="}'
        locator = ItemLocator.decode(raw)
        assert locator.url == "http://old.example"
        assert locator.secure_note == "hi"
        assert locator.format is LocatorFormat.LEGACY_SEPARATOR

    def test_plain_url(self):
        locator = ItemLocator.decode("http://github.com")
        assert locator.url == "http://github.com"
        assert locator.secure_note == ""
        assert locator.format is LocatorFormat.PLAIN_URL

    @pytest.mark.parametrize("raw", [
        "",
        "{",
        "[1,2,3]",
        "42",
        '{"url": "x"}',
        '{"url": "x", "secureNote": "%%%"}',
        '{"url": 5, "secureNote": ""}',
        '{"url": "x", "secureNote": null}',
        "|||",
    ])
    def test_malformed_never_raises(self, raw):
        locator = ItemLocator.decode(raw)
        assert locator.url == raw
        assert locator.secure_note == ""
        assert locator.format is LocatorFormat.PLAIN_URL

    def test_encode_always_current_format(self):
        legacy = ItemLocator.decode('{"url":"a"|||"secureNote":""}')
        assert legacy.encode() == '{"url":"a","secureNote":""}'

    def test_separator_inside_current_format(self):
        raw = encode_locator("https://x.test/a|||b", "n|||m")
        locator = decode_locator(raw)
        assert locator.url == "https://x.test/a|||b"
        assert locator.secure_note == "n|||m"
        assert locator.format is LocatorFormat.JSON

    def test_latin1_note_from_older_clients(self):
        # "café" as btoa() produces it: Y2Fm6Q== is 63 61 66 e9
        locator = ItemLocator.decode('{"url":"http://a.com","secureNote":"Y2Fm6Q=="}')
        assert locator.url == "http://a.com"
        assert locator.secure_note == "café"
        assert locator.format is LocatorFormat.JSON
