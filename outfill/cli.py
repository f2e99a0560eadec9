from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog

from outfill.config import settings
from outfill.inpaint.client import FillParams, ImagenInpaintClient, InpaintError
from outfill.inpaint.credentials import CredentialError, create_default_credential_provider
from outfill.logging import setup_logging
from outfill.pipeline.orchestrator import RunCanceledError, run_outfill

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="outfill",
        description="Repeatedly expand an image's canvas and outpaint the new border.",
    )
    parser.add_argument("initial", nargs="?", default=settings.initial_path, help="starting image")
    parser.add_argument("-n", "--rounds", type=int, default=settings.num_rounds, help="number of rounds")
    parser.add_argument("-o", "--output-dir", default=settings.output_dir, help="directory for out-N files")
    parser.add_argument("--scale", type=float, default=settings.scale_factor, help="canvas growth per round")
    parser.add_argument("--dilation", type=float, default=settings.mask_dilation, help="mask dilation fraction")
    parser.add_argument("--base-steps", type=int, default=settings.base_steps, help="generation step budget")
    parser.add_argument("--log-level", default=settings.log_level)
    return parser


def install_cancel_handler(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> None:
    """First Ctrl-C stops the run after the current round; a second one interrupts."""

    def _on_sigint() -> None:
        stop.set()
        loop.remove_signal_handler(signal.SIGINT)
        print("\nstopping after the current round, press Ctrl-C again to abort", flush=True)

    try:
        loop.add_signal_handler(signal.SIGINT, _on_sigint)
    except (NotImplementedError, RuntimeError):
        pass


async def _run(args: argparse.Namespace) -> int:
    stop = asyncio.Event()
    install_cancel_handler(asyncio.get_running_loop(), stop)

    def _check_canceled() -> None:
        if stop.is_set():
            raise RunCanceledError("canceled by user")

    def _progress(stage: str, progress: int, detail: str | None) -> None:
        if stage == "round" and detail:
            print(f"\n{detail}", flush=True)

    params = FillParams(
        dilation=args.dilation,
        base_steps=args.base_steps,
        prompt=settings.fill_prompt,
        sample_count=settings.sample_count,
    )
    credentials = create_default_credential_provider()
    await credentials.get_token()
    async with ImagenInpaintClient(credentials) as client:
        summary = await run_outfill(
            args.initial,
            args.rounds,
            adapter=client,
            output_dir=args.output_dir,
            scale=args.scale,
            params=params,
            on_progress=_progress,
            check_canceled=_check_canceled,
        )
    print(f"done: {summary.rounds_completed} round(s), last file {summary.final_output_path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.initial:
        parser.error("an initial image is required (argument or INITIAL_PATH)")
    if args.scale < 1.0:
        parser.error("--scale must be >= 1.0")

    setup_logging(args.log_level)
    try:
        return asyncio.run(_run(args))
    except RunCanceledError as exc:
        logger.warning("outfill.canceled", reason=str(exc))
        return 130
    except KeyboardInterrupt:
        logger.warning("outfill.interrupted")
        return 130
    except (CredentialError, InpaintError, OSError, ValueError) as exc:
        logger.error("outfill.failed", error=str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())
