"""
Tests for request signing (pan123_offline/signing.py)
"""

import zlib

import pytest

from pan123_offline.signing import (
    DIGIT_TABLE,
    data_signature,
    request_path,
    sign_url,
    time_signature,
)

EPOCH = 1700000000  # 2023-11-15 06:13:20 in Asia/Shanghai


def crc(value: str) -> str:
    return str(zlib.crc32(value.encode("utf-8")))


class TestRequestPath:
    """Tests for extracting the signed path."""

    def test_path_starts_at_api(self):
        assert request_path("https://www.123pan.com/b/api/file/list/new") == "/api/file/list/new"

    def test_query_is_not_part_of_path(self):
        assert request_path("https://www.123pan.com/b/api/user/info?x=1") == "/api/user/info"

    def test_url_without_api_raises(self):
        with pytest.raises(ValueError):
            request_path("https://www.123pan.com/b/file")


class TestTimeSignature:
    """Tests for the time component of the signature."""

    def test_digits_substituted_through_table(self):
        # 202311150613 -> e a e f d d d h a l d f
        assert time_signature(EPOCH) == crc("eaefdddhaldf")

    def test_only_first_ten_table_entries_are_used(self):
        assert DIGIT_TABLE[:10] == "adefghlmyi"

    def test_same_minute_same_signature(self):
        minute_start = EPOCH - 20  # 06:13:00
        assert time_signature(minute_start) == time_signature(minute_start + 59)

    def test_next_minute_differs(self):
        assert time_signature(EPOCH) != time_signature(EPOCH + 60)


class TestSignUrl:
    """Tests for sign_url."""

    def test_signature_parameter_format(self):
        url = "https://www.123pan.com/b/api/file/list/new"
        signed = sign_url(url, now=EPOCH, nonce=42)

        time_sign = crc("eaefdddhaldf")
        data_sign = crc(f"{EPOCH}|42|/api/file/list/new|web|3|{time_sign}")
        assert signed == f"{url}?{time_sign}={EPOCH}-42-{data_sign}"

    def test_data_signature_matches_helper(self):
        time_sign = time_signature(EPOCH)
        signed = sign_url("https://www.123pan.com/b/api/user/info", now=EPOCH, nonce=7)
        expected = data_signature(EPOCH, 7, "/api/user/info", time_sign)
        assert signed.endswith(f"={EPOCH}-7-{expected}")

    def test_existing_query_uses_ampersand(self):
        signed = sign_url("https://www.123pan.com/b/api/user/info?a=1", now=EPOCH, nonce=1)
        assert "?a=1&" in signed

    def test_random_nonce_in_range(self):
        signed = sign_url("https://www.123pan.com/b/api/user/info", now=EPOCH)
        _, value = signed.split("?", 1)[1].split("=", 1)
        epoch, nonce, _ = value.split("-")
        assert int(epoch) == EPOCH
        assert 0 <= int(nonce) < 10_000_000

    def test_failure_returns_unsigned_url(self, caplog):
        url = "https://www.123pan.com/no-signable-path"
        assert sign_url(url, now=EPOCH, nonce=1) == url
        assert "Failed to sign URL" in caplog.text
