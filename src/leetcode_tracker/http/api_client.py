"""Async client for the third-party submissions API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from leetcode_tracker.errors import NonRetryableClientError, TransientNetworkError, ValidationError
from leetcode_tracker.timeutils import parse_api_timestamp, utc_now

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_SUBMISSIONS_LIMIT = 50
DEFAULT_USER_AGENT = "leetcode-tracker/1.0"
ACCEPTED_STATUS = "Accepted"
COLD_START_STATUS_CODES = frozenset({502, 503, 504})


@dataclass(slots=True)
class Submission:
    slug: str
    status: str
    timestamp: datetime
    title: str = ""

    @property
    def accepted(self) -> bool:
        return self.status == ACCEPTED_STATUS


@dataclass(slots=True)
class SubmissionBatch:
    count: int
    submissions: list[Submission] = field(default_factory=list)


@dataclass(slots=True)
class UserProfile:
    username: str
    ranking: int | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class SubmissionApiClient:
    """Maps transport and HTTP failures onto the tracker error taxonomy.

    429 and 5xx answers and transport failures raise :class:`TransientNetworkError`
    (``cold_start`` for 502/503/504, timeouts and refused connections); other 4xx answers raise
    :class:`NonRetryableClientError`; malformed payloads raise :class:`ValidationError`.
    """

    def __init__(  # noqa: PLR0913
        self,
        base_url: str,
        username: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        submissions_limit: int = DEFAULT_SUBMISSIONS_LIMIT,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.submissions_limit = submissions_limit
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={"User-Agent": user_agent},
            transport=transport,
            follow_redirects=True,
        )

    async def probe(self) -> bool:
        """Cheap reachability check; any answer below 500 counts as healthy."""

        response = await self._get("/", allow_client_errors=True)
        return response.status_code < 500

    async def fetch_submissions(self, limit: int | None = None) -> SubmissionBatch:
        response = await self._get(
            f"/{self.username}/acSubmission",
            params={"limit": limit or self.submissions_limit},
        )
        return parse_submissions(_json(response, context="submissions"))

    async def fetch_profile(self) -> UserProfile:
        response = await self._get(f"/{self.username}")
        return parse_profile(_json(response, context="profile"))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> SubmissionApiClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    async def _get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        allow_client_errors: bool = False,
    ) -> httpx.Response:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as error:
            logger.warning("Timeout calling %s%s", self.base_url, path)
            raise TransientNetworkError(f"Timeout calling {path}", cold_start=True) from error
        except httpx.TransportError as error:
            logger.warning("Transport error calling %s%s: %s", self.base_url, path, error)
            raise TransientNetworkError(
                f"Connection failure calling {path}: {error}",
                cold_start=True,
            ) from error

        status = response.status_code
        if status == 429 or status >= 500:
            raise TransientNetworkError(
                f"HTTP {status} from {path}",
                status_code=status,
                cold_start=status in COLD_START_STATUS_CODES,
            )
        if status >= 400 and not allow_client_errors:
            raise NonRetryableClientError(f"HTTP {status} from {path}", status_code=status)
        return response


def parse_submissions(payload: Any, *, now: datetime | None = None) -> SubmissionBatch:
    """Validate an ``acSubmission`` payload."""

    ctx = "submissions"
    if not isinstance(payload, dict):
        raise ValidationError("payload must be an object", field="$", value=payload, context=ctx)
    entries = payload.get("submission")
    if not isinstance(entries, list):
        raise ValidationError("must be a list", field="submission", value=entries, context=ctx)

    reference = now or utc_now()
    submissions: list[Submission] = []
    for index, entry in enumerate(entries):
        field_name = f"submission[{index}]"
        if not isinstance(entry, dict):
            raise ValidationError("must be an object", field=field_name, value=entry, context=ctx)
        slug = entry.get("titleSlug")
        if not isinstance(slug, str) or not slug.strip():
            raise ValidationError(
                "must be a non-empty string",
                field=f"{field_name}.titleSlug",
                value=slug,
                context=ctx,
            )
        status = entry.get("statusDisplay")
        if not isinstance(status, str) or not status:
            raise ValidationError(
                "must be a non-empty string",
                field=f"{field_name}.statusDisplay",
                value=status,
                context=ctx,
            )
        try:
            timestamp = parse_api_timestamp(entry.get("timestamp"), now=reference)
        except ValueError as error:
            raise ValidationError(
                str(error),
                field=f"{field_name}.timestamp",
                value=entry.get("timestamp"),
                context=ctx,
            ) from error
        submissions.append(
            Submission(
                slug=slug,
                status=status,
                timestamp=timestamp,
                title=str(entry.get("title") or ""),
            ),
        )

    count = payload.get("count")
    return SubmissionBatch(
        count=count if isinstance(count, int) and not isinstance(count, bool) else len(submissions),
        submissions=submissions,
    )


def parse_profile(payload: Any) -> UserProfile:
    ctx = "profile"
    if not isinstance(payload, dict):
        raise ValidationError("payload must be an object", field="$", value=payload, context=ctx)
    username = payload.get("username")
    if not isinstance(username, str) or not username:
        raise ValidationError("must be a non-empty string", field="username", value=username, context=ctx)
    ranking = payload.get("ranking")
    return UserProfile(
        username=username,
        ranking=ranking if isinstance(ranking, int) and not isinstance(ranking, bool) else None,
        raw=payload,
    )


def _json(response: httpx.Response, *, context: str) -> Any:
    try:
        return response.json()
    except ValueError as error:
        raise ValidationError(
            "response body is not JSON",
            field="$",
            value=response.text[:200],
            context=context,
        ) from error
