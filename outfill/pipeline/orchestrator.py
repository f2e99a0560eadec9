from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import structlog

from outfill.canvas.pipeline import run_round
from outfill.canvas.types import RoundResult
from outfill.config import settings
from outfill.inpaint.client import FillParams, InpaintAdapter
from outfill.storage.local import prepare_output_dir, round_output_name

logger = structlog.get_logger(__name__)


class RunCanceledError(RuntimeError):
    pass


@dataclass(slots=True)
class OutfillRunSummary:
    initial_path: str
    output_paths: list[str] = field(default_factory=list)
    rounds: list[RoundResult] = field(default_factory=list)

    @property
    def rounds_completed(self) -> int:
        return len(self.rounds)

    @property
    def final_output_path(self) -> str:
        return self.output_paths[-1] if self.output_paths else self.initial_path


def _require_file(path: str) -> None:
    if not Path(path).exists():
        raise FileNotFoundError(f"input image not found: {path}")


async def run_outfill(
    initial_path: str,
    num_rounds: int,
    *,
    adapter: InpaintAdapter,
    output_dir: str | None = None,
    scale: float | None = None,
    params: FillParams | None = None,
    on_progress: Callable[[str, int, str | None], None] | None = None,
    check_canceled: Callable[[], None] | None = None,
) -> OutfillRunSummary:
    """Run `num_rounds` expansion rounds, each reading the previous round's file.

    Outputs are named `<prefix>-<i>.<ext>` for i in 1..num_rounds, zero-padded
    so lexical order is round order. Any failure aborts the remaining rounds.
    """
    if num_rounds <= 0:
        raise ValueError(f"num_rounds must be positive: {num_rounds}")
    _require_file(initial_path)

    def _emit(stage: str, progress: int, detail: str | None = None) -> None:
        if on_progress is not None:
            on_progress(stage, progress, detail)

    def _check() -> None:
        if check_canceled is not None:
            check_canceled()

    root = prepare_output_dir(output_dir if output_dir is not None else settings.output_dir)
    params = params or FillParams.from_settings()
    summary = OutfillRunSummary(initial_path=initial_path)

    _emit("run_start", 0, f"outfill start: {num_rounds} round(s)")
    current_path = initial_path
    for idx in range(num_rounds):
        _check()
        out_path = str(root / round_output_name(idx + 1, num_rounds))
        progress = int((idx / num_rounds) * 100)
        _emit("round", progress, f"* Outcrop {current_path} -> {out_path}")
        logger.info("outfill.round.start", round=idx + 1, of=num_rounds, input=current_path, output=out_path)

        def _on_stage(stage: str, detail: str, _idx: int = idx, _progress: int = progress) -> None:
            _emit(f"round_{stage}", _progress, f"round {_idx + 1}/{num_rounds}: {detail}")

        try:
            result = await run_round(
                current_path,
                out_path,
                adapter=adapter,
                index=idx + 1,
                scale=scale,
                params=params,
                on_stage=_on_stage,
            )
        except Exception:
            logger.exception("outfill.round.failed", round=idx + 1, input=current_path)
            _emit("failed", progress, f"round {idx + 1}/{num_rounds} failed")
            raise
        summary.rounds.append(result)
        summary.output_paths.append(out_path)
        current_path = out_path

    _emit("completed", 100, f"outfill completed: {summary.rounds_completed} round(s)")
    logger.info("outfill.run.done", rounds=summary.rounds_completed, final=summary.final_output_path)
    return summary
