"""
Decode check for recovered images.

Carved payloads always run to the end of the fragment, so a recovered JPEG
may carry trailing junk or be cut short.  Pillow tells us whether the image
still opens; the answer is reported, never used to drop a file.
"""

from __future__ import annotations

import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Recovered fragments are legitimate files, not decompression bombs.
Image.MAX_IMAGE_PIXELS = None

PILLOW_EXTS = {
    "jpg", "exif.jpg", "png", "gif", "tif", "bmp", "psd", "webp",
}


def check_decodable(extension: str, payload: bytes) -> tuple[Optional[bool], str]:
    """Return (decodable, reason).  decodable is None for non-image types."""
    ext = extension.lower()
    if ext not in PILLOW_EXTS:
        return None, "not an image type"

    try:
        img = Image.open(io.BytesIO(payload))
        img.verify()
        # verify() leaves the image unusable; reopen to load pixels
        img = Image.open(io.BytesIO(payload))
        img.load()
    except UnidentifiedImageError as e:
        return False, f"Not a valid image: {e}"
    except Exception as e:
        err = str(e)
        if "truncated" in err.lower():
            return False, f"Image truncated: {err}"
        return False, f"Image decode failed: {err}"

    w, h = img.size
    return True, f"Image OK ({w}x{h}, {img.mode})"
