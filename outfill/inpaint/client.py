from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp
import numpy as np
import structlog
from pydantic import ValidationError

from outfill.canvas.io import decode_base64, encode_base64
from outfill.config import Settings, settings
from outfill.inpaint.credentials import CredentialProvider, create_default_credential_provider
from outfill.schemas import (
    EditConfig,
    FillInstance,
    FillParameters,
    FillRequest,
    FillResponse,
    MaskImageConfig,
    ReferenceImage,
    ReferenceImageRef,
)

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class InpaintError(RuntimeError):
    pass


class InpaintHTTPError(InpaintError):
    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"predict endpoint returned HTTP {status}: {body[:500]}")
        self.status = status
        self.body = body


class InpaintTransportError(InpaintError):
    pass


class MissingPredictionError(InpaintError):
    def __init__(self, payload: Any) -> None:
        super().__init__("predict response contained no output image")
        self.payload = payload


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text) if text else {}
    except ValueError as exc:
        raise InpaintError(f"predict response is not JSON: {text[:200]!r}") from exc


@dataclass(frozen=True, slots=True)
class FillParams:
    dilation: float
    base_steps: int
    prompt: str = ""
    sample_count: int = 1

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> FillParams:
        cfg = config or settings
        return cls(
            dilation=cfg.mask_dilation,
            base_steps=cfg.base_steps,
            prompt=cfg.fill_prompt,
            sample_count=cfg.sample_count,
        )


class InpaintAdapter(Protocol):
    async def fill(self, matte_rgb: np.ndarray, mask: np.ndarray, params: FillParams) -> np.ndarray:
        """Return the filled raster.

        `mask` is uint8 with 255 on generation-allowed pixels and 0 on
        pixels to keep.
        """


def build_fill_request(
    matte_b64: str,
    mask_b64: str,
    params: FillParams,
) -> FillRequest:
    return FillRequest(
        instances=[
            FillInstance(
                prompt=params.prompt,
                reference_images=[
                    ReferenceImageRef(
                        reference_type="REFERENCE_TYPE_RAW",
                        reference_id=1,
                        reference_image=ReferenceImage(bytes_base64_encoded=matte_b64),
                    ),
                    ReferenceImageRef(
                        reference_type="REFERENCE_TYPE_MASK",
                        reference_id=2,
                        reference_image=ReferenceImage(bytes_base64_encoded=mask_b64),
                        mask_image_config=MaskImageConfig(dilation=params.dilation),
                    ),
                ],
            )
        ],
        parameters=FillParameters(
            edit_config=EditConfig(base_steps=params.base_steps),
            sample_count=params.sample_count,
        ),
    )


class ImagenInpaintClient:
    """Outpaint fill through the Vertex AI Imagen `:predict` endpoint.

    Notes:
    - One POST per `fill` call. Retries are off unless `max_retries` > 0 and
      only cover transport errors and HTTP 429/5xx.
    - A response without `predictions[0].bytesBase64Encoded` is logged with
      its payload and raised as `MissingPredictionError`.
    """

    def __init__(
        self,
        credentials: CredentialProvider | None = None,
        *,
        url: str | None = None,
        session: aiohttp.ClientSession | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
        retry_backoff_seconds: float | None = None,
        matte_quality: int | None = None,
    ) -> None:
        self._credentials = credentials or create_default_credential_provider()
        self._url = url or settings.resolved_predict_url()
        self._session = session
        self._owns_session = session is None
        self._timeout_seconds = (
            float(timeout_seconds) if timeout_seconds is not None else settings.inpaint_timeout_seconds
        )
        self._max_retries = max(0, max_retries if max_retries is not None else settings.inpaint_max_retries)
        self._retry_backoff = (
            retry_backoff_seconds
            if retry_backoff_seconds is not None
            else settings.inpaint_retry_backoff_seconds
        )
        self._matte_quality = matte_quality if matte_quality is not None else settings.matte_quality

    async def __aenter__(self) -> ImagenInpaintClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout, trust_env=True)
            self._owns_session = True
        return self._session

    async def fill(self, matte_rgb: np.ndarray, mask: np.ndarray, params: FillParams) -> np.ndarray:
        if mask.shape[:2] != matte_rgb.shape[:2]:
            raise ValueError(
                f"mask shape mismatch: mask={mask.shape[:2]}, matte={matte_rgb.shape[:2]}"
            )

        # Mask goes out lossless so its two values stay exact.
        request = build_fill_request(
            encode_base64(matte_rgb, fmt="JPEG", quality=self._matte_quality),
            encode_base64(mask, fmt="PNG"),
            params,
        )
        payload = await self._post(request.to_wire())
        return self._extract_image(payload)

    async def _post(self, body: dict[str, Any]) -> Any:
        token = await self._credentials.get_token()
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }
        session = await self._get_session()

        for attempt in range(self._max_retries + 1):
            try:
                async with session.post(self._url, json=body, headers=headers) as resp:
                    if resp.status >= 400:
                        raise InpaintHTTPError(resp.status, await resp.text())
                    text = await resp.text()
                logger.info("inpaint.predict.ok", url=self._url, attempt=attempt + 1)
                return _parse_json(text)
            except InpaintHTTPError as exc:
                if exc.status not in RETRYABLE_STATUS or attempt >= self._max_retries:
                    logger.error("inpaint.predict.http_error", status=exc.status, attempt=attempt + 1)
                    raise
                logger.warning("inpaint.predict.retry", status=exc.status, attempt=attempt + 1)
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                if attempt >= self._max_retries:
                    logger.error("inpaint.predict.transport_error", error=str(exc), attempt=attempt + 1)
                    raise InpaintTransportError(f"predict request failed: {exc}") from exc
                logger.warning("inpaint.predict.retry", error=str(exc), attempt=attempt + 1)
            await asyncio.sleep(self._retry_backoff * (2**attempt))
        raise AssertionError("Unreachable")

    def _extract_image(self, payload: Any) -> np.ndarray:
        try:
            response = FillResponse.model_validate(payload)
        except ValidationError:
            response = FillResponse()

        image_b64 = response.first_image_b64()
        if not image_b64:
            logger.error("inpaint.missing_prediction", response=payload)
            raise MissingPredictionError(payload)

        try:
            return decode_base64(image_b64)
        except ValueError as exc:
            raise InpaintError(f"predict response image could not be decoded: {exc}") from exc
