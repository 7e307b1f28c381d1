"""
Turn the pipeline's torrent file into a magnet link.
"""

import hashlib
import logging
import urllib.parse
from pathlib import Path
from typing import Union

import aiofiles
import bencode

from .exceptions import TorrentReadError

logger = logging.getLogger(__name__)

MAGNET_PREFIX = b"magnet:"


def magnet_from_torrent(data: bytes) -> str:
    """Build a magnet link from bencoded .torrent content."""
    metainfo = bencode.bdecode(data)
    info = metainfo.get("info") if isinstance(metainfo, dict) else None
    if not isinstance(info, dict):
        raise ValueError("torrent has no info dictionary")

    info_hash = hashlib.sha1(bencode.bencode(info)).hexdigest()
    magnet = f"magnet:?xt=urn:btih:{info_hash}"
    name = info.get("name")
    if name:
        magnet += "&dn=" + urllib.parse.quote(str(name))
    return magnet


async def read_magnet(torrent_file: Union[str, Path]) -> str:
    """
    Read a magnet link from ``torrent_file``.

    The file may hold a plain magnet link (text) or a bencoded torrent.
    """
    path = str(torrent_file)
    try:
        async with aiofiles.open(path, "rb") as f:
            data = await f.read()
    except OSError as e:
        raise TorrentReadError(path, f"Cannot open torrent file {path}: {e}") from e

    stripped = data.strip()
    if stripped.lower().startswith(MAGNET_PREFIX):
        return stripped.decode("utf-8")

    try:
        return magnet_from_torrent(data)
    except Exception as e:
        raise TorrentReadError(path, f"Not a magnet link or torrent: {path}") from e
