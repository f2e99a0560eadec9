from __future__ import annotations

from typing import Callable

import structlog

from outfill.canvas.compositor import build_mask, build_matte, preserve_ratio
from outfill.canvas.io import load_rgb
from outfill.canvas.normalize import normalize_width, persist
from outfill.canvas.planner import center_offset, plan_canvas
from outfill.canvas.types import RoundResult
from outfill.config import settings
from outfill.inpaint.client import FillParams, InpaintAdapter

logger = structlog.get_logger(__name__)

StageCallback = Callable[[str, str], None]


async def run_round(
    input_path: str,
    output_path: str,
    *,
    adapter: InpaintAdapter,
    index: int = 0,
    scale: float | None = None,
    params: FillParams | None = None,
    backdrop: tuple[int, int, int] | None = None,
    output_quality: int | None = None,
    on_stage: StageCallback | None = None,
) -> RoundResult:
    """Grow one image by `scale` and write the outpainted, width-normalized result.

    Stages run in a fixed order: plan, matte, mask, fill, normalize, save.
    """
    scale = settings.scale_factor if scale is None else scale
    params = params or FillParams.from_settings()
    backdrop = settings.backdrop_color if backdrop is None else backdrop
    quality = settings.output_quality if output_quality is None else output_quality
    log = logger.bind(round=index, input=input_path, output=output_path)

    def _stage(stage: str, detail: str) -> None:
        log.info(f"outfill.round.{stage}", detail=detail)
        if on_stage is not None:
            on_stage(stage, detail)

    _stage("load", f"Loading {input_path}")
    source = load_rgb(input_path)
    src_h, src_w = source.shape[:2]
    _stage("dimensions", f"inFile width={src_w} height={src_h}")

    plan = plan_canvas(src_w, src_h, scale)
    offset = center_offset(src_w, src_h, plan)
    _stage("plan", f"Working width={plan.width} height={plan.height} offset=({offset.x},{offset.y})")

    _stage("matte", "Create matte")
    matte = build_matte(source, plan, offset, backdrop)

    _stage("mask", "Create mask")
    mask = build_mask(source, plan, offset)
    log.debug("outfill.round.mask_coverage", preserve_ratio=round(preserve_ratio(mask), 4))

    _stage("fill", "Call Imagen")
    filled = await adapter.fill(matte, mask, params)
    filled_h, filled_w = filled.shape[:2]

    _stage("normalize", f"Scale image width {filled_w} -> {src_w}")
    result = normalize_width(filled, src_w)

    _stage("save", f"Save to {output_path}")
    persist(result, output_path, quality=quality)

    return RoundResult(
        index=index,
        input_path=input_path,
        output_path=output_path,
        input_size=(src_w, src_h),
        plan=plan,
        offset=offset,
        filled_size=(filled_w, filled_h),
        output_size=(result.shape[1], result.shape[0]),
    )
