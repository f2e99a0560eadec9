from __future__ import annotations

import math

from outfill.canvas.types import CanvasPlan, Offset


def round_half_up(value: float) -> int:
    # Built-in round() is half-to-even; pixel offsets must round .5 upward.
    return int(math.floor(value + 0.5))


def plan_canvas(width: int, height: int, scale: float) -> CanvasPlan:
    """Grow a `width` x `height` canvas by `scale`, keeping its aspect ratio.

    Height is scaled first and width is solved back from the ratio, so the
    result carries a single rounding step instead of two independent ones.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"dimensions must be positive: width={width}, height={height}")
    if scale <= 0:
        raise ValueError(f"scale must be positive: scale={scale}")

    aspect_ratio = width / height
    new_height = max(1, round_half_up(height * scale))
    new_width = max(1, round_half_up(aspect_ratio * new_height))
    return CanvasPlan(width=new_width, height=new_height, aspect_ratio=aspect_ratio)


def center_offset(width: int, height: int, plan: CanvasPlan) -> Offset:
    return Offset(
        x=round_half_up((plan.width - width) / 2),
        y=round_half_up((plan.height - height) / 2),
    )
