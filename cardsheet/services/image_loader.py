# -*- coding: utf-8 -*-
# cardsheet/services/image_loader.py
import asyncio
import base64
import binascii
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Tuple, Union

import aiofiles
from PIL import Image, UnidentifiedImageError

from cardsheet.exceptions import DecodeFailure, FetchFailure

logger = logging.getLogger(__name__)

SUPPORTED_URL_SCHEMES = ('http', 'https', 'data', 'file')
USER_AGENT = 'Mozilla/5.0 (compatible; cardsheet)'


@dataclass
class DecodedImage:
    image: Image.Image
    source_data_url: str

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


def to_data_url(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    """Split a base64 data URL into (mime, bytes)"""
    if not isinstance(data_url, str) or not data_url.startswith('data:'):
        raise DecodeFailure("Not a data URL")
    header, sep, payload = data_url.partition(',')
    if not sep or not header.endswith(';base64'):
        raise DecodeFailure("Data URL is not base64 encoded")
    mime = header[len('data:'):-len(';base64')] or 'application/octet-stream'
    try:
        return mime, base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeFailure(f"Corrupt data URL payload: {e}") from e


def _decode_bytes(data: bytes) -> DecodedImage:
    if not data:
        raise DecodeFailure("Empty image data")
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            mime = Image.MIME.get(img.format, 'image/png')
            decoded = img.convert('RGBA') if img.mode != 'RGBA' else img.copy()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeFailure(f"Could not decode image: {e}") from e

    logger.debug(f"Decoded {mime} image {decoded.width}x{decoded.height}")
    return DecodedImage(decoded, to_data_url(data, mime))


async def decode_image(source: Union[bytes, str]) -> DecodedImage:
    """Decode raw bytes or a data URL into an RGBA image; raises DecodeFailure."""
    if isinstance(source, str):
        _, source = decode_data_url(source)
    await asyncio.sleep(0)
    return _decode_bytes(source)


def resolve_url(raw_url: str) -> str:
    url = (raw_url or '').strip()
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in SUPPORTED_URL_SCHEMES:
        raise FetchFailure("Enter a valid image URL.")
    if parsed.scheme in ('http', 'https') and not parsed.netloc:
        raise FetchFailure("Enter a valid image URL.")
    return url


def _fetch_sync(url: str, timeout: float) -> Tuple[str, bytes]:
    request = urllib.request.Request(url, headers={'User-Agent': USER_AGENT})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            status = getattr(response, 'status', 200) or 200
            if not 200 <= status < 300:
                raise FetchFailure(f"Could not fetch the image (HTTP {status}).")
            content_type = response.headers.get('Content-Type', '') if response.headers else ''
            return content_type, response.read()
    except urllib.error.HTTPError as e:
        raise FetchFailure(f"Could not fetch the image (HTTP {e.code}).") from e
    except (urllib.error.URLError, OSError, ValueError) as e:
        raise FetchFailure(f"Could not load image from URL: {e}") from e


async def fetch_image_bytes(raw_url: str, timeout: float = 15.0) -> bytes:
    """Fetch an image over the network; raises FetchFailure."""
    url = resolve_url(raw_url)
    logger.info(f"Fetching image: {url[:120]}")
    content_type, data = await asyncio.to_thread(_fetch_sync, url, timeout)

    media_type = content_type.split(';', 1)[0].strip().lower()
    if media_type and not media_type.startswith('image/'):
        raise FetchFailure("That URL does not point to an image file.")
    if not data:
        raise FetchFailure("The image URL returned no data.")
    return data


async def read_image_file(path: Union[str, Path]) -> bytes:
    """Read a user-selected file"""
    try:
        async with aiofiles.open(path, 'rb') as f:
            return await f.read()
    except OSError as e:
        raise DecodeFailure(f"Could not read {Path(path).name}: {e}") from e
