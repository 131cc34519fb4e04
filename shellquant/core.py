"""
Image access for ShellQuant.

Includes:
- PIL to numpy conversion at native scale
- Single channel extraction
- ImageSource: a lazily decoded greyscale channel for a nucleus or signal group
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .models import ImageLoadError

logger = logging.getLogger(__name__)

# -----------------------
# Image helpers
# -----------------------

def pil_to_numpy_native(img: Image.Image) -> np.ndarray:
    arr = np.array(img)
    if arr.ndim == 3 and arr.shape[2] == 4:
        arr = arr[:, :, :3]
    return arr.astype(np.float32, copy=False)

def extract_single_channel(img: np.ndarray, chan) -> np.ndarray:
    if img.ndim == 2:
        return img.astype(np.float32, copy=False)
    key = chan
    if isinstance(chan, str):
        key = chan.strip().lower()
    elif isinstance(chan, (int, np.integer)):
        key = {0: "gray", 1: "r", 2: "g", 3: "b"}.get(int(chan), None)
    if key is None:
        raise ValueError("Invalid channel selection")
    r, g, b = img[:, :, 0], img[:, :, 1], img[:, :, 2]
    if key in ("gray", "grey"):
        return (0.2989 * r + 0.5870 * g + 0.1140 * b).astype(np.float32)
    if key == "r":
        return r.astype(np.float32)
    if key == "g":
        return g.astype(np.float32)
    if key == "b":
        return b.astype(np.float32)
    raise ValueError("Invalid channel selection")

def load_channel(path: Union[str, os.PathLike], chan=0) -> np.ndarray:
    """Decode an image file and return one channel as a 2D float32 array.

    Raises ImageLoadError if the file is missing or cannot be decoded.
    """
    if path is None:
        raise ImageLoadError("No image file given")
    if not os.path.isfile(path):
        raise ImageLoadError(f"Image file not found: {path}")
    try:
        with Image.open(path) as img:
            arr = pil_to_numpy_native(img)
    except (UnidentifiedImageError, OSError) as e:
        raise ImageLoadError(f"Unable to decode image {path}: {e}") from e
    try:
        return extract_single_channel(arr, chan)
    except (ValueError, IndexError) as e:
        raise ImageLoadError(f"Channel {chan!r} not available in {path}") from e


@dataclass
class ImageSource:
    """Where a greyscale channel for a component comes from.

    Either an in-memory array (``image``) or a file on disk (``path``). Files are
    decoded on every ``load()``; nothing is cached between nuclei.
    """

    path: Optional[str] = None
    channel: Union[int, str] = 0
    image: Optional[np.ndarray] = None

    def load(self) -> np.ndarray:
        if self.image is not None:
            arr = np.asarray(self.image)
            if arr.ndim == 3 and arr.shape[2] == 4:
                arr = arr[:, :, :3]
            try:
                return extract_single_channel(arr, self.channel)
            except (ValueError, IndexError) as e:
                raise ImageLoadError(f"Channel {self.channel!r} not available in image") from e
        return load_channel(self.path, self.channel)

    def describe(self) -> str:
        return self.path if self.path is not None else "<in-memory image>"
