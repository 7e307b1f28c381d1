"""
Request signing for the 123pan web API.

Every B-API call carries an extra query parameter derived from the request
path and the current time:

    <time_sign>=<epoch>-<nonce>-<data_sign>

where ``time_sign`` is the CRC-32 of the minute-precision Shanghai timestamp
with each digit substituted through a fixed letter table, and ``data_sign`` is
the CRC-32 of ``epoch|nonce|path|web|3|time_sign``.
"""

import logging
import random
import time
import zlib
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

PROVIDER_TIMEZONE = ZoneInfo("Asia/Shanghai")
DIGIT_TABLE = "adefghlmyijnopkqrstubcvwsz"
PLATFORM = "web"
APP_VERSION = "3"
NONCE_BOUND = 10_000_000


def _crc32(value: str) -> str:
    return str(zlib.crc32(value.encode("utf-8")) & 0xFFFFFFFF)


def request_path(url: str) -> str:
    """Return the part of the URL starting at ``/api``."""
    index = url.index("/api")
    path = url[index:]
    return path.split("?", 1)[0]


def time_signature(epoch: int) -> str:
    """CRC-32 over the letter-substituted ``yyyyMMddHHmm`` provider-local time."""
    stamp = datetime.fromtimestamp(epoch, PROVIDER_TIMEZONE).strftime("%Y%m%d%H%M")
    letters = "".join(DIGIT_TABLE[int(c)] for c in stamp)
    return _crc32(letters)


def data_signature(epoch: int, nonce: int, path: str, time_sign: str) -> str:
    return _crc32(f"{epoch}|{nonce}|{path}|{PLATFORM}|{APP_VERSION}|{time_sign}")


def sign_url(url: str, now: Optional[float] = None, nonce: Optional[int] = None) -> str:
    """
    Append the provider signature parameter to ``url``.

    Signing is best-effort: on any failure the unsigned URL is returned and the
    provider's rejection surfaces downstream as an ordinary request failure.
    """
    try:
        path = request_path(url)
        epoch = int(now if now is not None else time.time())
        if nonce is None:
            nonce = random.randrange(NONCE_BOUND)

        time_sign = time_signature(epoch)
        data_sign = data_signature(epoch, nonce, path, time_sign)

        separator = "&" if "?" in url else "?"
        return f"{url}{separator}{time_sign}={epoch}-{nonce}-{data_sign}"
    except Exception as e:
        logger.warning(f"Failed to sign URL, sending unsigned: {e}")
        return url
