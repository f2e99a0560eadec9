from __future__ import annotations

import numpy as np

from outfill.canvas.types import CanvasPlan, MaskValue, Offset


def _check_fits(original: np.ndarray, plan: CanvasPlan, offset: Offset) -> tuple[int, int, int, int]:
    h, w = original.shape[:2]
    x1, y1 = offset.x, offset.y
    x2, y2 = x1 + w, y1 + h
    if x1 < 0 or y1 < 0 or x2 > plan.width or y2 > plan.height:
        raise ValueError(
            "original does not fit canvas: "
            f"original={w}x{h}, offset=({x1},{y1}), canvas={plan.width}x{plan.height}"
        )
    return x1, y1, x2, y2


def build_matte(
    original: np.ndarray,
    plan: CanvasPlan,
    offset: Offset,
    backdrop: tuple[int, int, int] = (0, 0, 0),
) -> np.ndarray:
    """Place `original` on a solid `backdrop` canvas at `offset`, no blending."""
    x1, y1, x2, y2 = _check_fits(original, plan, offset)
    canvas = np.empty((plan.height, plan.width, 3), dtype=np.uint8)
    canvas[:, :] = np.asarray(backdrop, dtype=np.uint8)
    canvas[y1:y2, x1:x2] = original[:, :, :3]
    return canvas


def build_mask(
    original: np.ndarray,
    plan: CanvasPlan,
    offset: Offset,
    *,
    generate: MaskValue = MaskValue.GENERATE,
    preserve: MaskValue = MaskValue.PRESERVE,
) -> np.ndarray:
    """Return a canvas-sized uint8 mask.

    The whole field is `generate` except an `original`-sized rectangle at
    `offset`, which is `preserve`. Use the same offset as the matte.
    """
    if MaskValue(generate) == MaskValue(preserve):
        raise ValueError("generate and preserve mask values must differ")

    x1, y1, x2, y2 = _check_fits(original, plan, offset)
    mask = np.full((plan.height, plan.width), int(generate), dtype=np.uint8)
    mask[y1:y2, x1:x2] = int(preserve)
    return mask


def preserve_ratio(mask: np.ndarray) -> float:
    if mask.size == 0:
        return 0.0
    return float((mask == int(MaskValue.PRESERVE)).sum()) / float(mask.size)
