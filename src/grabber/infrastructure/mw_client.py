import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import aiohttp
from aiohttp import (
    ClientConnectorError,
    ClientPayloadError,
    ClientResponseError,
    ContentTypeError,
    ServerDisconnectedError,
)
from src.config.logger_config import logger
from src.config.settings import DEFAULT_RETRY_DELAYS, DEFAULT_USER_AGENT

from src.grabber.domain.errors import RemoteAuthError, RemoteContractError, RemoteUnavailableError
from src.grabber.domain.models import RemoteRevision, api_list
from src.grabber.infrastructure.raw_sink import RawApiJsonlSink

SECRET_PARAMS = frozenset({"lgpassword", "lgtoken", "password", "token"})
FULL_REVISION_PROPS = "ids|timestamp|sha1|size|flags|content|contentmodel|comment|user|userid|tags"


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed escalating delays; one first attempt plus one attempt per delay."""

    delays: tuple[float, ...] = DEFAULT_RETRY_DELAYS

    @property
    def max_attempts(self) -> int:
        return len(self.delays) + 1

    def delay_for(self, attempt: int) -> float:
        return self.delays[attempt - 1]


NO_RETRY = RetryPolicy(delays=())


class MediaWikiClient:
    def __init__(
        self,
        base_url: str,
        raw_sink: RawApiJsonlSink | None = None,
        run_id: str | None = None,
        retry_policy: RetryPolicy | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_seconds: float = 60,
    ) -> None:
        self.base_url = base_url
        self.raw_sink = raw_sink
        self.run_id = run_id
        self.retry_policy = retry_policy or RetryPolicy()
        self.user_agent = user_agent
        self.timeout_seconds = timeout_seconds

    async def query(
        self,
        session: aiohttp.ClientSession,
        params: dict[str, Any],
        *,
        operation: str,
    ) -> dict[str, Any]:
        data = await self._request(
            session,
            {"action": "query", "format": "json", "formatversion": "2", **params},
            operation=operation,
        )
        if "error" in data:
            error = data["error"] or {}
            raise RemoteContractError(
                f"API error during {operation}: {error.get('code', '?')}: {error.get('info', '')}"
            )
        if data.get("warnings"):
            logger.debug("API warnings during {}: {}", operation, data["warnings"])
        return data

    async def fetch_siteinfo(self, session: aiohttp.ClientSession, siprop: str = "namespaces|statistics") -> dict[str, Any]:
        data = await self.query(session, {"meta": "siteinfo", "siprop": siprop}, operation="fetch_siteinfo")
        siteinfo = data.get("query")
        if not siteinfo:
            raise RemoteContractError("No siteinfo data found")
        return siteinfo

    async def fetch_revision(self, session: aiohttp.ClientSession, revid: int) -> RemoteRevision:
        """Fetch one revision with its full content; the bulk listings leave content out."""
        data = await self.query(
            session,
            {"prop": "revisions", "revids": str(revid), "rvprop": FULL_REVISION_PROPS, "rvslots": "main"},
            operation="fetch_revision",
        )
        for page in api_list(data.get("query", {}).get("pages")):
            revisions = page.get("revisions") or []
            if revisions:
                return RemoteRevision.from_api(revisions[0])
        raise RemoteContractError(f"Could not fetch data for revision {revid} on remote wiki: bad API call")

    async def fetch_user_name(self, session: aiohttp.ClientSession, userid: int) -> str | None:
        data = await self.query(session, {"list": "users", "ususerids": str(userid)}, operation="fetch_user_name")
        users = data.get("query", {}).get("users") or []
        if not users or users[0].get("missing") is not None or not users[0].get("name"):
            return None
        return str(users[0]["name"])

    async def login(self, session: aiohttp.ClientSession, username: str, password: str) -> None:
        tokens = await self._request(
            session,
            {"action": "query", "meta": "tokens", "type": "login", "format": "json"},
            operation="login_token",
        )
        token = tokens.get("query", {}).get("tokens", {}).get("logintoken")
        if not token:
            raise RemoteAuthError(f"Failed to log in as {username}: no login token returned")

        result = await self._request(
            session,
            {"action": "login", "lgname": username, "lgpassword": password, "lgtoken": token, "format": "json"},
            operation="login",
        )
        login = result.get("login") or {}
        if login.get("result") != "Success":
            raise RemoteAuthError(f"Failed to log in as {username}: {login.get('reason') or login.get('result')}")
        logger.info("Logged in as {}...", login.get("lgusername", username))

    async def _request(
        self,
        session: aiohttp.ClientSession,
        params: dict[str, Any],
        *,
        operation: str,
    ) -> dict[str, Any]:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds, connect=10)
        headers = {"User-Agent": self.user_agent}
        retries = self.retry_policy.max_attempts
        last_error: Exception | None = None
        payload = {key: str(value) for key, value in params.items()}

        for attempt in range(1, retries + 1):
            started_at = datetime.now(timezone.utc).isoformat()
            try:
                async with session.post(self.base_url, data=payload, headers=headers, timeout=timeout) as resp:
                    if resp.status >= 500 or resp.status == 429:
                        logger.warning("Server error {}. Attempt {}/{}", resp.status, attempt, retries)
                        raise ClientResponseError(
                            resp.request_info,
                            resp.history,
                            status=resp.status,
                            message="Server Error",
                        )

                    if resp.status != 200:
                        body = await resp.text()
                        await self._write_raw_event(
                            operation, attempt, params, started_at,
                            status=resp.status, outcome="http_error",
                            error={"type": "HTTPError", "message": f"HTTP {resp.status}"},
                            response_text=body,
                        )
                        logger.error("HTTP {} during {}: {}", resp.status, operation, body[:500])
                        raise RemoteUnavailableError(f"HTTP {resp.status} during {operation}")

                    try:
                        data = await resp.json(content_type=None)
                    except (ContentTypeError, json.JSONDecodeError, ValueError) as exc:
                        last_error = exc
                        await self._write_raw_event(
                            operation, attempt, params, started_at,
                            status=resp.status, outcome="retryable_error",
                            error={"type": type(exc).__name__, "message": str(exc)},
                            response_text=await resp.text(),
                        )
                    else:
                        if not isinstance(data, dict):
                            raise RemoteContractError(f"Unexpected response body during {operation}")
                        await self._write_raw_event(
                            operation, attempt, params, started_at,
                            status=resp.status, outcome="success",
                            response_json=data,
                        )
                        return data

            except (
                ClientResponseError,
                ClientConnectorError,
                ServerDisconnectedError,
                asyncio.TimeoutError,
                ClientPayloadError,
            ) as exc:
                last_error = exc
                await self._write_raw_event(
                    operation, attempt, params, started_at,
                    status=getattr(exc, "status", None), outcome="retryable_error",
                    error={"type": type(exc).__name__, "message": str(exc)},
                )

            if attempt == retries:
                logger.error("Failed {} after {} attempts. Error: {}", operation, retries, last_error)
                raise RemoteUnavailableError(
                    f"{operation} failed after {retries} attempts: {last_error}"
                ) from last_error
            wait_time = self.retry_policy.delay_for(attempt)
            logger.warning("API error: no results ({}); retrying in {}s...", last_error, wait_time)
            await asyncio.sleep(wait_time)

        raise RemoteUnavailableError(f"{operation} was never attempted")

    async def _write_raw_event(
        self,
        operation: str,
        attempt: int,
        params: dict[str, Any],
        started_at: str,
        *,
        status: int | None,
        outcome: str,
        error: dict[str, Any] | None = None,
        response_json: dict[str, Any] | None = None,
        response_text: str | None = None,
    ) -> None:
        if self.raw_sink is None:
            return
        event = {
            "run_id": self.run_id,
            "operation": operation,
            "attempt": attempt,
            "request": {"base_url": self.base_url, "params": redact_params(params)},
            "http": {"status": status},
            "response_json": response_json,
            "response_text": response_text,
            "warnings": (response_json or {}).get("warnings"),
            "continue_token": (response_json or {}).get("continue"),
            "error": error,
            "timing": {"started_at": started_at, "finished_at": datetime.now(timezone.utc).isoformat()},
            "outcome": outcome,
        }
        try:
            await self.raw_sink.write_event(event)
        except Exception as exc:
            logger.warning("Failed to persist raw API event: {}", exc)


def redact_params(params: dict[str, Any]) -> dict[str, Any]:
    return {key: ("***" if key in SECRET_PARAMS else value) for key, value in params.items()}
