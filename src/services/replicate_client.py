"""Replicate job client - submit, poll and fall back across input variants."""

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import httpx

from models.generation import (
    GenerationOutcome,
    GenerationRequest,
    JobHandle,
    JobResult,
    JobState,
    UpstreamJobInput,
)
from services.errors import (
    AllVariantsExhausted,
    AuthError,
    ImageProxyError,
    UpstreamFailure,
    UpstreamTimeout,
)
from services.job_variants import build_candidates
from utils.config import ServiceConfig

logger = logging.getLogger(__name__)

# Replicate prediction statuses
STATUS_MAP = {
    "starting": JobState.RUNNING,
    "processing": JobState.RUNNING,
    "succeeded": JobState.SUCCEEDED,
    "failed": JobState.FAILED,
    "canceled": JobState.CANCELED,
}

Sleep = Callable[[float], Awaitable[Any]]


def map_status(status: Optional[str]) -> JobState:
    """Translate an upstream status string into a JobState."""
    state = STATUS_MAP.get((status or "").lower())
    if state is None:
        logger.warning(f"Unexpected Replicate status: {status!r}")
        return JobState.RUNNING
    return state


def extract_outputs(output: Any) -> list[str]:
    """Normalise the prediction output into an ordered list of references."""
    if output is None:
        return []
    if isinstance(output, str):
        return [output] if output else []
    if isinstance(output, dict):
        for key in ("url", "image", "output"):
            if isinstance(output.get(key), str) and output[key]:
                return [output[key]]
        return []
    if isinstance(output, (list, tuple)):
        return [item for item in output if isinstance(item, str) and item]
    return []


class PollTimer:
    """Fixed-interval, bounded, cancellable polling schedule.

    The sleep callable is injectable so tests can drive it with a fake clock.
    """

    def __init__(self, interval: float, max_attempts: int, sleep: Sleep = asyncio.sleep):
        self.interval = interval
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def ticks(self) -> AsyncIterator[int]:
        """Yield attempt numbers 1..max_attempts, sleeping before each."""
        for attempt in range(1, self.max_attempts + 1):
            if self._cancelled:
                return
            await self._sleep(self.interval)
            if self._cancelled:
                return
            yield attempt


class ReplicateClient:
    """Client for the Replicate predictions API."""

    def __init__(
        self,
        config: ServiceConfig,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """Initialize the Replicate client.

        Args:
            config: Immutable service configuration (token, model, polling)
            client: Optional shared HTTP client (tests pass a MockTransport client)
            sleep: Async sleep used between polls
        """
        self.config = config
        self.client = client or httpx.AsyncClient(timeout=config.http_timeout)
        self._sleep = sleep

    def is_configured(self) -> bool:
        """Check if the Replicate API token is configured."""
        return bool(self.config.replicate_api_token)

    def ensure_configured(self) -> None:
        if not self.is_configured():
            raise AuthError(
                "Upstream credential missing",
                detail="REPLICATE_API_TOKEN is not configured on the server",
            )

    def _headers(self) -> dict[str, str]:
        self.ensure_configured()
        return {
            "Authorization": f"Token {self.config.replicate_api_token}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:500] or f"HTTP {response.status_code}"
        if isinstance(data, dict):
            detail = data.get("detail") or data.get("error") or data.get("title")
            if detail:
                return str(detail)
        return f"HTTP {response.status_code}"

    def _raise_for_response(self, response: httpx.Response, action: str) -> None:
        if response.status_code in (401, 403):
            raise AuthError(
                "Upstream rejected the credential",
                detail=f"Replicate {action}: {self._error_detail(response)}",
            )
        if response.status_code >= 400:
            raise UpstreamFailure(
                f"Replicate {action} failed ({response.status_code})",
                detail=self._error_detail(response),
            )

    # =========================================================================
    # Submit-and-poll cycle
    # =========================================================================

    async def create_job(self, version: str, params: dict[str, Any]) -> tuple[JobHandle, dict]:
        """Submit a prediction and return its handle plus the raw response."""
        headers = self._headers()
        url = f"{self.config.api_base}/predictions"

        try:
            response = await self.client.post(
                url, headers=headers, json={"version": version, "input": params}
            )
        except httpx.TimeoutException:
            raise UpstreamTimeout("Replicate did not accept the job in time")
        except httpx.HTTPError as e:
            raise UpstreamFailure("Could not reach Replicate", detail=str(e))

        self._raise_for_response(response, "job creation")
        data = response.json()

        job_id = data.get("id")
        if not job_id:
            raise UpstreamFailure("Replicate did not return a prediction ID")

        poll_url = (data.get("urls") or {}).get("get") or f"{url}/{job_id}"
        handle = JobHandle(id=job_id, poll_url=poll_url, status=data.get("status") or "starting")
        logger.info(f"Replicate prediction submitted: {job_id} (version: {version})")
        return handle, data

    async def get_job(self, handle: JobHandle) -> dict:
        """Fetch the current prediction status."""
        try:
            response = await self.client.get(handle.poll_url, headers=self._headers())
        except httpx.TimeoutException:
            raise UpstreamTimeout(f"Status request for prediction {handle.id} timed out")
        except httpx.HTTPError as e:
            raise UpstreamFailure("Could not reach Replicate", detail=str(e))

        self._raise_for_response(response, "status check")
        return response.json()

    @staticmethod
    def _result_from(handle: JobHandle, data: dict, state: JobState, attempts: int) -> JobResult:
        error = data.get("error")
        return JobResult(
            job_id=handle.id,
            state=state,
            outputs=extract_outputs(data.get("output")),
            error=str(error) if error else None,
            attempts=attempts,
        )

    async def wait_for_job(self, handle: JobHandle, initial: Optional[dict] = None) -> JobResult:
        """Poll a prediction until it is terminal or the attempt ceiling is hit."""
        if initial is not None:
            state = map_status(initial.get("status"))
            if state.is_terminal:
                return self._result_from(handle, initial, state, 0)

        timer = PollTimer(
            self.config.poll_interval, self.config.max_poll_attempts, self._sleep
        )
        async for attempt in timer.ticks():
            data = await self.get_job(handle)
            state = map_status(data.get("status"))
            logger.debug(f"Prediction {handle.id} status: {state.value} (poll {attempt})")
            if state.is_terminal:
                return self._result_from(handle, data, state, attempt)

        logger.warning(
            f"Prediction {handle.id} still running after {timer.max_attempts} polls; "
            "giving up locally"
        )
        return JobResult(job_id=handle.id, state=JobState.TIMED_OUT, attempts=timer.max_attempts)

    async def run_job(self, version: str, job_input: UpstreamJobInput) -> JobResult:
        """Submit one candidate and wait for a usable result.

        Raises:
            UpstreamFailure: failed, canceled, or succeeded without output
            UpstreamTimeout: polling ceiling reached
        """
        handle, initial = await self.create_job(version, job_input.params)
        result = await self.wait_for_job(handle, initial)

        if result.state is JobState.SUCCEEDED:
            if not result.first_output:
                raise UpstreamFailure(
                    f"Prediction {handle.id} succeeded with empty output",
                    detail=f"variant={job_input.variant}",
                )
            return result

        if result.state is JobState.TIMED_OUT:
            raise UpstreamTimeout(
                f"Prediction {handle.id} did not finish after {result.attempts} polls",
                detail=f"variant={job_input.variant}",
            )

        raise UpstreamFailure(
            f"Prediction {handle.id} {result.state.value}",
            detail=result.error or f"variant={job_input.variant}",
        )

    # =========================================================================
    # Fallback chain
    # =========================================================================

    def candidates_for(self, request: GenerationRequest) -> list[tuple[str, UpstreamJobInput]]:
        """(model version, input) pairs in attempt order."""
        inputs = build_candidates(request)
        return [
            (version, job_input)
            for version in self.config.model_versions
            for job_input in inputs
        ]

    async def run_with_fallback(self, request: GenerationRequest) -> GenerationOutcome:
        """Try each candidate in order and return the first usable result.

        Raises:
            AuthError: credential missing or rejected (aborts the chain)
            UpstreamFailure / UpstreamTimeout: the only candidate failed
            AllVariantsExhausted: several candidates were tried and all failed
        """
        self.ensure_configured()
        candidates = self.candidates_for(request)

        attempts_log: list[dict] = []
        last_error: Optional[ImageProxyError] = None

        for index, (version, job_input) in enumerate(candidates, start=1):
            logger.info(
                f"Attempt {index}/{len(candidates)}: variant={job_input.variant} version={version}"
            )
            start_time = time.time()
            try:
                result = await self.run_job(version, job_input)
            except AuthError:
                raise
            except ImageProxyError as e:
                last_error = e
            except Exception as e:
                logger.warning(f"Attempt {index} raised unexpectedly: {e}", exc_info=True)
                last_error = UpstreamFailure("Unexpected error during job attempt", detail=str(e))
            else:
                logger.info(
                    f"Variant {job_input.variant} succeeded in "
                    f"{int((time.time() - start_time) * 1000)}ms (prediction {result.job_id})"
                )
                return GenerationOutcome(
                    image=result.first_output,
                    engine=f"replicate:{version}",
                    variant=job_input.variant,
                    job_id=result.job_id,
                    attempts=index,
                    request=request,
                )

            attempts_log.append(
                {
                    "variant": job_input.variant,
                    "version": version,
                    "error": last_error.message,
                    "detail": last_error.detail,
                }
            )
            logger.warning(
                f"Variant {job_input.variant} failed: {last_error.message}"
                + (f" ({last_error.detail})" if last_error.detail else "")
            )

        if len(candidates) == 1 and last_error is not None:
            raise last_error

        raise AllVariantsExhausted(
            f"All {len(candidates)} input variants failed", last_error, attempts_log
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
