"""End-to-end tests for single rounds and multi-round runs with a stub fill."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from outfill.canvas.pipeline import run_round
from outfill.canvas.types import MaskValue
from outfill.inpaint.client import FillParams, MissingPredictionError
from outfill.pipeline.orchestrator import RunCanceledError, run_outfill
from outfill.storage.local import round_output_name

PARAMS = FillParams(dilation=0.03, base_steps=50)
FILL_COLOR = (90, 90, 90)


class StubAdapter:
    """Paints the generate region a flat color, optionally returning a different size."""

    def __init__(self, *, out_size: tuple[int, int] | None = None, fail_on_call: int | None = None) -> None:
        self.out_size = out_size
        self.fail_on_call = fail_on_call
        self.calls: list[tuple[np.ndarray, np.ndarray, FillParams]] = []

    async def fill(self, matte_rgb, mask, params):
        self.calls.append((matte_rgb, mask, params))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise MissingPredictionError({"predictions": []})
        out = matte_rgb.copy()
        out[mask == int(MaskValue.GENERATE)] = FILL_COLOR
        if self.out_size is not None:
            out = np.array(Image.fromarray(out).resize(self.out_size))
        return out


class TestRunRound:
    @pytest.mark.asyncio
    async def test_reference_round(self, temp_dir, write_image):
        src = write_image("brussels-1280-964.jpg", 1280, 964, (250, 10, 10))
        out = str(temp_dir / round_output_name(1, 100, prefix="out", extension="jpg"))
        adapter = StubAdapter()

        result = await run_round(src, out, adapter=adapter, index=1, scale=1.05, params=PARAMS)

        matte, mask, params = adapter.calls[0]
        assert matte.shape == (1012, 1344, 3)
        assert mask.shape == (1012, 1344)
        assert (mask[24 : 24 + 964, 32 : 32 + 1280] == MaskValue.PRESERVE).all()
        assert int((mask == MaskValue.PRESERVE).sum()) == 1280 * 964
        assert not matte[:24].any()
        assert params == PARAMS

        assert result.plan.size == (1344, 1012)
        assert (result.offset.x, result.offset.y) == (32, 24)
        assert result.filled_size == (1344, 1012)
        assert result.output_size == (1280, 964)
        assert Path(out).name == "out-001.jpg"
        with Image.open(out) as img:
            assert img.format == "JPEG"
            assert img.size == (1280, 964)

    @pytest.mark.asyncio
    async def test_model_resolution_is_normalized_back(self, temp_dir, write_image):
        src = write_image("in.jpg", 120, 90)
        out = str(temp_dir / "out-1.jpg")
        result = await run_round(src, out, adapter=StubAdapter(out_size=(256, 200)), scale=1.1, params=PARAMS)
        assert result.output_size == (120, 94)

    @pytest.mark.asyncio
    async def test_stage_order(self, temp_dir, write_image):
        src = write_image("in.jpg", 40, 30)
        stages: list[str] = []
        await run_round(
            src,
            str(temp_dir / "o.jpg"),
            adapter=StubAdapter(),
            scale=1.2,
            params=PARAMS,
            on_stage=lambda stage, detail: stages.append(stage),
        )
        assert stages == ["load", "dimensions", "plan", "matte", "mask", "fill", "normalize", "save"]

    @pytest.mark.asyncio
    async def test_missing_input(self, temp_dir):
        with pytest.raises(FileNotFoundError, match="nope.jpg"):
            await run_round(str(temp_dir / "nope.jpg"), str(temp_dir / "o.jpg"), adapter=StubAdapter(), params=PARAMS)


class TestRunOutfill:
    @pytest.mark.asyncio
    async def test_rounds_chain_through_files(self, temp_dir, write_image):
        src = write_image("start.jpg", 64, 48)
        out_dir = temp_dir / "frames"
        adapter = StubAdapter()

        summary = await run_outfill(src, 12, adapter=adapter, output_dir=str(out_dir), scale=1.1, params=PARAMS)

        names = [Path(p).name for p in summary.output_paths]
        assert names == [f"out-{i:02d}.jpg" for i in range(1, 13)]
        assert sorted(p.name for p in out_dir.iterdir()) == names
        assert summary.rounds_completed == 12
        assert summary.final_output_path == str(out_dir / "out-12.jpg")

        assert summary.rounds[0].input_path == src
        for prev, cur in zip(summary.rounds, summary.rounds[1:]):
            assert cur.input_path == prev.output_path
        assert all(r.output_size[0] == 64 for r in summary.rounds)
        assert len(adapter.calls) == 12

    @pytest.mark.asyncio
    async def test_failure_aborts_remaining_rounds(self, temp_dir, write_image):
        src = write_image("start.jpg", 32, 24)
        events: list[str] = []
        with pytest.raises(MissingPredictionError):
            await run_outfill(
                src,
                5,
                adapter=StubAdapter(fail_on_call=2),
                output_dir=str(temp_dir),
                params=PARAMS,
                on_progress=lambda stage, progress, detail: events.append(stage),
            )
        assert (temp_dir / "out-1.jpg").exists()
        assert not (temp_dir / "out-2.jpg").exists()
        assert not (temp_dir / "out-3.jpg").exists()
        assert events[-1] == "failed"
        assert "completed" not in events

    @pytest.mark.asyncio
    async def test_cancel_checked_between_rounds(self, temp_dir, write_image):
        src = write_image("start.jpg", 32, 24)
        adapter = StubAdapter()

        def _check() -> None:
            if len(adapter.calls) >= 2:
                raise RunCanceledError("canceled by user")

        with pytest.raises(RunCanceledError):
            await run_outfill(src, 5, adapter=adapter, output_dir=str(temp_dir), params=PARAMS, check_canceled=_check)
        assert len(adapter.calls) == 2
        assert (temp_dir / "out-2.jpg").exists()
        assert not (temp_dir / "out-3.jpg").exists()

    @pytest.mark.asyncio
    async def test_progress_events(self, temp_dir, write_image):
        src = write_image("start.jpg", 32, 24)
        events: list[tuple[str, int]] = []
        await run_outfill(
            src,
            2,
            adapter=StubAdapter(),
            output_dir=str(temp_dir),
            params=PARAMS,
            on_progress=lambda stage, progress, detail: events.append((stage, progress)),
        )
        stages = [s for s, _ in events]
        assert stages[0] == "run_start"
        assert stages[-1] == "completed"
        assert stages.count("round") == 2
        assert stages.count("round_fill") == 2
        assert [p for _, p in events] == sorted(p for _, p in events)

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, temp_dir, write_image):
        src = write_image("start.jpg", 32, 24)
        with pytest.raises(ValueError):
            await run_outfill(src, 0, adapter=StubAdapter(), output_dir=str(temp_dir))
        with pytest.raises(FileNotFoundError):
            await run_outfill(str(temp_dir / "missing.jpg"), 3, adapter=StubAdapter(), output_dir=str(temp_dir))
