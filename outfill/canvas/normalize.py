from __future__ import annotations

import numpy as np
from PIL import Image

from outfill.canvas.io import save_jpeg
from outfill.canvas.planner import round_half_up


def normalize_width(filled_rgb: np.ndarray, target_width: int) -> np.ndarray:
    """Resize to exactly `target_width`, height following the filled raster's own ratio."""
    if target_width <= 0:
        raise ValueError(f"target_width must be positive: {target_width}")

    h, w = filled_rgb.shape[:2]
    target_height = max(1, round_half_up(h * target_width / w))
    if (w, h) == (target_width, target_height):
        return filled_rgb.copy()

    resized = Image.fromarray(filled_rgb).resize(
        (target_width, target_height),
        Image.Resampling.LANCZOS,
    )
    return np.array(resized, dtype=np.uint8)


def persist(image_rgb: np.ndarray, path: str, *, quality: int = 80) -> str:
    save_jpeg(path, image_rgb, quality=quality)
    return path
