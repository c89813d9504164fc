# stringart/darkness.py
import math
from typing import Union

import numpy as np
from skimage import io, transform, util

MAX_DARKNESS = 255

# ITU-R BT.601 weights; skimage's rgb2gray uses BT.709, which darkens reds less
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


def luminance(img: np.ndarray) -> np.ndarray:
    """Per-pixel luminance in 0..255. Alpha (and anything past RGB) is dropped."""
    img = np.asarray(img, dtype=np.float64)
    if img.ndim == 2:
        return img
    if img.shape[2] < 3:
        return img[:, :, 0]
    return img[:, :, :3] @ LUMA_WEIGHTS


def load_grayscale(image: Union[str, np.ndarray], frame_size: int,
                   invert: bool = False) -> np.ndarray:
    """
    Loads an image (path or decoded array), centre-crops it to a square,
    resizes it to frame_size x frame_size and returns uint8 luminance.
    With invert=True light areas become dark and vice versa.
    """
    img = io.imread(image) if isinstance(image, str) else np.asarray(image)

    # float images in 0..1 and 16/32-bit integer images are scaled to 0..255
    if img.dtype.kind == "f" and img.size and img.min() >= 0.0 and img.max() <= 1.0:
        img = util.img_as_ubyte(img)
    elif img.dtype.kind == "u" and img.dtype.itemsize > 1:
        img = util.img_as_ubyte(img)
    gray = luminance(img)

    h, w = gray.shape
    side = min(h, w)
    top = (h - side) // 2
    left = (w - side) // 2
    gray = gray[top:top + side, left:left + side]

    if gray.shape != (frame_size, frame_size):
        gray = transform.resize(gray, (frame_size, frame_size),
                                preserve_range=True, anti_aliasing=True)

    gray = np.clip(np.rint(gray), 0, 255).astype(np.uint8)
    if invert:
        gray = 255 - gray
    return gray


def darkening_amount(opacity: float) -> int:
    return int(math.floor(opacity * MAX_DARKNESS))


class DarknessField:
    """
    Remaining "ink demand" per pixel: 0 means nothing left to draw,
    MAX_DARKNESS means fully dark. Pixel paths are (n, 2) arrays of (x, y);
    coordinates outside the grid are ignored by every operation.
    """

    def __init__(self, values: np.ndarray):
        self.values = np.clip(np.asarray(values, dtype=np.int32), 0, MAX_DARKNESS)
        self.height, self.width = self.values.shape

    @classmethod
    def from_bitmap(cls, luminance_grid: np.ndarray, invert: bool = False) -> "DarknessField":
        lum = np.asarray(luminance_grid, dtype=np.float64)
        if lum.ndim == 3:
            lum = luminance(lum)
        lum = np.clip(np.rint(lum), 0, 255).astype(np.int32)
        return cls(lum if invert else 255 - lum)

    def _in_bounds(self, pixels: np.ndarray):
        pixels = np.asarray(pixels, dtype=np.int64).reshape(-1, 2)
        xs, ys = pixels[:, 0], pixels[:, 1]
        mask = (xs >= 0) & (xs < self.width) & (ys >= 0) & (ys < self.height)
        return xs[mask], ys[mask]

    def value_at(self, x: int, y: int) -> int:
        if 0 <= x < self.width and 0 <= y < self.height:
            return int(self.values[y, x])
        return 0

    def sum_along(self, pixels: np.ndarray) -> int:
        xs, ys = self._in_bounds(pixels)
        return int(self.values[ys, xs].sum())

    def subtract_along(self, pixels: np.ndarray, amount: int) -> None:
        xs, ys = self._in_bounds(pixels)
        # subtract.at applies repeated pixels once per occurrence
        np.subtract.at(self.values, (ys, xs), amount)
        np.maximum(self.values, 0, out=self.values)

    def total(self) -> int:
        return int(self.values.sum())

    def to_image(self) -> np.ndarray:
        """Remaining darkness as a uint8 grayscale picture (white = done)."""
        return (MAX_DARKNESS - self.values).astype(np.uint8)
