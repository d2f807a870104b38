"""
Luma Dream Machine Service

Submits video generations and interpolations to the Luma API and reads their
status back.

API Docs: https://docs.lumalabs.ai/docs/api

A generation is seeded either from a still image (frame0 = image) or from two
earlier generations (frame0/frame1 = generation), which Luma turns into a
transition video between them.
"""

import logging
from typing import Optional

import httpx

from loopscape.models.schemas import LUMA_STATES, GenerationJob, GenerationStatus
from loopscape.services.errors import MalformedResponseError, TransportError

logger = logging.getLogger(__name__)

LUMA_API_URL = "https://api.lumalabs.ai/dream-machine/v1"
DEFAULT_TIMEOUT = 60


class LumaService:
    """Thin client over the three Luma calls the background loop needs."""

    def __init__(
        self,
        api_key: str,
        api_url: str = LUMA_API_URL,
        model: str = "ray-2",
        timeout: int = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

        if not api_key:
            logger.warning("LUMA_AI_API_KEY not configured, video generation will fail")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict:
        return {
            "accept": "application/json",
            "authorization": f"Bearer {self.api_key}",
        }

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    f"{self.api_url}{path}",
                    headers=self._headers(),
                    json=payload
                )
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 300:
            logger.error(f"[Luma] {method} {path} HTTP {response.status_code}: {response.text[:500]}")
            raise TransportError(f"{method} {path} returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"[Luma] Invalid JSON from {path}: {response.text[:200]}")
            raise MalformedResponseError(f"Invalid JSON from {path}") from e

        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected an object from {path}, got {type(data).__name__}")
        return data

    def _parse_job(self, data: dict) -> GenerationJob:
        job_id = data.get("id")
        if not job_id:
            logger.error(f"[Luma] No generation id in response: {data}")
            raise MalformedResponseError("No generation id in response")

        raw_state = data.get("state") or data.get("status")
        if raw_state is None:
            status = GenerationStatus.PENDING
        else:
            status = LUMA_STATES.get(str(raw_state).lower())
            if status is None:
                logger.warning(f"[Luma] Unknown state '{raw_state}' for {job_id}, treating as processing")
                status = GenerationStatus.PROCESSING

        assets = data.get("assets") or {}
        result_url = assets.get("video") or data.get("video_url")

        return GenerationJob(
            id=job_id,
            status=status,
            result_url=result_url,
            failure_reason=data.get("failure_reason"),
        )

    async def submit_generation(self, prompt: str, source_image_url: str) -> GenerationJob:
        """
        Start a new generation seeded from a still image.

        Returns:
            GenerationJob carrying the id assigned by Luma
        """
        payload = {
            "prompt": prompt,
            "model": self.model,
            "keyframes": {
                "frame0": {
                    "type": "image",
                    "url": source_image_url,
                },
            },
        }

        logger.info(f"[Luma] Submitting generation: {prompt[:100]}")
        job = self._parse_job(await self._request("POST", "/generations", payload))
        logger.info(f"[Luma] Generation submitted: {job.id}")
        return job

    async def submit_interpolation(self, job_id_a: str, job_id_b: str, prompt: str) -> GenerationJob:
        """
        Start a generation that transitions from job_id_a into job_id_b.

        Both ids must refer to completed generations.
        """
        payload = {
            "prompt": prompt,
            "model": self.model,
            "keyframes": {
                "frame0": {
                    "type": "generation",
                    "id": job_id_a,
                },
                "frame1": {
                    "type": "generation",
                    "id": job_id_b,
                },
            },
        }

        logger.info(f"[Luma] Submitting interpolation {job_id_a} -> {job_id_b}")
        job = self._parse_job(await self._request("POST", "/generations", payload))
        logger.info(f"[Luma] Interpolation submitted: {job.id}")
        return job

    async def fetch_status(self, job_id: str) -> GenerationJob:
        job = self._parse_job(await self._request("GET", f"/generations/{job_id}"))
        logger.info(f"[Luma] Generation {job_id} status: {job.status.value}")
        return job
