"""
Codeforces judge client.

Talks to the public API (problemset.problems, user.status, user.info) over
httpx. Retry with exponential backoff for 5xx, 429 and timeouts; anything that
still fails becomes UpstreamUnavailableError. The problem catalog is cached
in-process for `catalog_ttl_seconds`.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from cfplanner.config import Settings
from cfplanner.engines.errors import HandleNotFoundError, UpstreamUnavailableError
from cfplanner.engines.judge.types import JudgeClient, Problem, SolveEvent
from cfplanner.logging_config import get_logger
from cfplanner.pedagogy.topic_graph import TopicGraph

logger = get_logger(__name__)

# Default timeout and retry
HTTP_TIMEOUT = 10.0
MAX_RETRIES = 3
RETRY_BACKOFF = (1.0, 2.0, 4.0)  # seconds

_PENDING_VERDICT = "TESTING"


async def _request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    max_retries: int = MAX_RETRIES,
    backoff: Sequence[float] = RETRY_BACKOFF,
    **kwargs: Any,
) -> httpx.Response:
    """Perform request with exponential backoff for 5xx and timeouts. On 429, honour Retry-After."""
    last_exc: Optional[Exception] = None
    for attempt in range(max_retries):
        delay = backoff[min(attempt, len(backoff) - 1)] if backoff else 0
        try:
            response = await client.request(method, url, **kwargs)
            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                wait = int(retry_after) if retry_after and retry_after.isdigit() else delay
                if attempt < max_retries - 1:
                    await asyncio.sleep(wait)
                    continue
                return response
            if response.status_code >= 500 and attempt < max_retries - 1:
                await asyncio.sleep(delay)
                continue
            return response
        except (httpx.TimeoutException, httpx.ConnectError) as e:
            last_exc = e
            logger.warning("Judge request failed (attempt %d/%d): %s", attempt + 1, max_retries, e)
            if attempt < max_retries - 1:
                await asyncio.sleep(delay)
    if last_exc:
        raise last_exc
    return await client.request(method, url, **kwargs)


def _problem_id(raw: Dict[str, Any]) -> Optional[str]:
    contest_id = raw.get("contestId")
    index = raw.get("index")
    if contest_id is None or not index:
        return None
    return f"{contest_id}{index}"


class CodeforcesJudge(JudgeClient):
    """JudgeClient backed by the Codeforces API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        graph: TopicGraph,
        base_url: str = "https://codeforces.com/api",
        timeout: float = HTTP_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        catalog_ttl_seconds: float = 3600.0,
        backoff: Sequence[float] = RETRY_BACKOFF,
    ):
        self._client = client
        self.graph = graph
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.catalog_ttl = timedelta(seconds=catalog_ttl_seconds)
        self.backoff = tuple(backoff)
        self._catalog: Optional[Tuple[datetime, List[Problem]]] = None
        self._catalog_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, graph: TopicGraph, settings: Settings) -> "CodeforcesJudge":
        return cls(
            client,
            graph,
            base_url=settings.judge_base_url,
            timeout=settings.judge_timeout_seconds,
            max_retries=settings.judge_max_retries,
            catalog_ttl_seconds=settings.catalog_ttl_seconds,
        )

    async def _call(self, api_method: str, params: Dict[str, Any], handle: Optional[str] = None) -> Any:
        """
        GET one API method and return its `result`.

        A FAILED status on a handle-scoped call means the handle does not
        exist; everything else that is not a clean OK is an upstream failure.
        """
        url = f"{self.base_url}/{api_method}"
        try:
            response = await _request_with_retry(
                self._client,
                "GET",
                url,
                max_retries=self.max_retries,
                backoff=self.backoff,
                params=params,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Judge unreachable", extra={"api_method": api_method, "error": str(e)})
            raise UpstreamUnavailableError("judge unavailable") from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise UpstreamUnavailableError(
                "judge rate limit reached",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else 30,
            )
        if response.status_code >= 500:
            logger.warning(
                "Judge server error",
                extra={"api_method": api_method, "status_code": response.status_code},
            )
            raise UpstreamUnavailableError("judge unavailable")

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamUnavailableError("judge returned malformed data") from e
        if not isinstance(payload, dict):
            raise UpstreamUnavailableError("judge returned malformed data")

        status = payload.get("status")
        if status == "OK" and "result" in payload:
            return payload["result"]
        if status == "FAILED" and handle is not None:
            logger.info(
                "Judge rejected handle",
                extra={"handle": handle, "comment": payload.get("comment")},
            )
            raise HandleNotFoundError(handle)
        logger.warning(
            "Judge returned unexpected status",
            extra={"api_method": api_method, "status": status, "comment": payload.get("comment")},
        )
        raise UpstreamUnavailableError("judge unavailable")

    def _to_problem(self, raw: Dict[str, Any]) -> Optional[Problem]:
        problem_id = _problem_id(raw)
        if problem_id is None:
            return None
        return Problem(
            id=problem_id,
            name=raw.get("name") or "",
            rating=int(raw.get("rating") or 0),
            tags=tuple(self.graph.topics_for_tags(raw.get("tags") or ())),
        )

    async def _load_catalog(self) -> List[Problem]:
        result = await self._call("problemset.problems", {})
        raw_problems = result.get("problems") if isinstance(result, dict) else None
        if not isinstance(raw_problems, list):
            raise UpstreamUnavailableError("judge returned malformed data")
        catalog = []
        for raw in raw_problems:
            problem = self._to_problem(raw) if isinstance(raw, dict) else None
            if problem is not None:
                catalog.append(problem)
        logger.info("Problem catalog refreshed", extra={"problems": len(catalog)})
        return catalog

    async def catalog(self) -> List[Problem]:
        """Whole catalog, refreshed at most once per TTL."""
        async with self._catalog_lock:
            now = datetime.now(timezone.utc)
            if self._catalog is not None:
                fetched_at, problems = self._catalog
                if now - fetched_at < self.catalog_ttl:
                    return problems
            problems = await self._load_catalog()
            self._catalog = (now, problems)
            return problems

    def invalidate_catalog(self) -> None:
        self._catalog = None

    async def list_problems_by_tag(self, topic: str) -> List[Problem]:
        self.graph.get(topic)
        return [p for p in await self.catalog() if topic in p.tags]

    async def fetch_recent_submissions(self, handle: str) -> List[SolveEvent]:
        result = await self._call("user.status", {"handle": handle}, handle=handle)
        if not isinstance(result, list):
            raise UpstreamUnavailableError("judge returned malformed data")
        events = []
        for raw in result:
            if not isinstance(raw, dict) or not isinstance(raw.get("problem"), dict):
                continue
            problem = self._to_problem(raw["problem"])
            if problem is None:
                continue
            events.append(SolveEvent(
                problem=problem,
                verdict=raw.get("verdict") or _PENDING_VERDICT,
                submitted_at=datetime.fromtimestamp(int(raw.get("creationTimeSeconds") or 0), tz=timezone.utc),
            ))
        return events

    async def handle_exists(self, handle: str) -> bool:
        try:
            await self._call("user.info", {"handles": handle}, handle=handle)
        except HandleNotFoundError:
            return False
        return True
