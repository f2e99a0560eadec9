from __future__ import annotations

import re
from pathlib import Path

from outfill.config import settings


_SAFE_NAME_PATTERN = re.compile(r"[^a-zA-Z0-9._-]+")
# Round outputs are always JPEG-encoded.
JPEG_EXTENSIONS = frozenset({"jpg", "jpeg"})


def _safe_name(name: str) -> str:
    cleaned = _SAFE_NAME_PATTERN.sub("_", name).strip("._")
    return cleaned or "out"


def pad_width(num_rounds: int) -> int:
    if num_rounds <= 0:
        raise ValueError(f"num_rounds must be positive: {num_rounds}")
    return len(str(num_rounds))


def round_output_name(
    index: int,
    num_rounds: int,
    *,
    prefix: str | None = None,
    extension: str | None = None,
) -> str:
    """`out-007.jpg` style name, padded to the digit count of `num_rounds`."""
    if index < 0:
        raise ValueError(f"index must not be negative: {index}")
    stem = _safe_name(prefix if prefix is not None else settings.output_prefix)
    ext = (extension if extension is not None else settings.output_extension).lstrip(".").lower()
    if ext not in JPEG_EXTENSIONS:
        raise ValueError(f"round outputs are JPEG, unsupported extension: {ext}")
    return f"{stem}-{index:0{pad_width(num_rounds)}d}.{ext}"


def prepare_output_dir(output_dir: str) -> Path:
    root = Path(output_dir)
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OSError(f"cannot create output directory {output_dir}: {exc}") from exc
    return root
