from __future__ import annotations

import base64
import binascii
from io import BytesIO
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError


def load_rgb(path: str) -> np.ndarray:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"input image not found: {path}")
    with Image.open(p) as pil:
        return np.array(pil.convert("RGB"), dtype=np.uint8)


def save_jpeg(path: str, image_rgb: np.ndarray, *, quality: int = 80) -> None:
    try:
        Image.fromarray(image_rgb).save(path, format="JPEG", quality=quality)
    except OSError as exc:
        raise OSError(f"failed to write image {path}: {exc}") from exc


def encode_base64(image: np.ndarray, *, fmt: str = "JPEG", quality: int = 90) -> str:
    """Encode an RGB raster or a 2-D mask as base64 image bytes."""
    buffer = BytesIO()
    kwargs: dict[str, object] = {"format": fmt}
    if fmt.upper() in {"JPEG", "JPG"}:
        kwargs = {"format": "JPEG", "quality": quality}
    Image.fromarray(np.ascontiguousarray(image)).save(buffer, **kwargs)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def decode_base64(data: str) -> np.ndarray:
    try:
        raw = base64.b64decode(data, validate=True)
        with Image.open(BytesIO(raw)) as pil:
            return np.array(pil.convert("RGB"), dtype=np.uint8)
    except (binascii.Error, UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError(f"undecodable image payload: {exc}") from exc
