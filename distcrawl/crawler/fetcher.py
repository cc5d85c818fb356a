"""
Fetcher module: performs HTTP GETs with a configured user-agent and timeout.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout

__all__ = ["FetchError", "FetchResult", "Fetcher"]


class FetchError(Exception):
    """Network failure, timeout or non-2xx answer for *url*."""

    def __init__(self, url: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status = status


@dataclass(slots=True)
class FetchResult:
    """Raw HTTP answer: status, response headers and body bytes."""

    url: str
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding, errors="replace")


class Fetcher:
    """Thin wrapper over an aiohttp session; the session is opened lazily."""

    def __init__(self, user_agent: str, session: Optional[ClientSession] = None) -> None:
        self.user_agent = user_agent
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> Fetcher:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(
                headers={"User-Agent": self.user_agent},
                raise_for_status=False,
            )
            self._owns_session = True
        return self._session

    async def fetch(self, url: str, timeout: float) -> FetchResult:
        """
        GET *url* within *timeout* seconds.

        Returns FetchResult for 2xx answers, raises FetchError otherwise.
        """
        session = self._get_session()
        try:
            async with session.get(
                url,
                timeout=ClientTimeout(total=timeout),
                headers={"User-Agent": self.user_agent},
            ) as resp:
                if not 200 <= resp.status < 300:
                    raise FetchError(url, f"HTTP {resp.status}", status=resp.status)
                body = await resp.read()
                return FetchResult(
                    url=str(resp.url),
                    status=resp.status,
                    headers={k: v for k, v in resp.headers.items()},
                    body=body,
                )
        except asyncio.TimeoutError as exc:
            raise FetchError(url, f"timed out after {timeout}s") from exc
        except ClientError as exc:
            raise FetchError(url, str(exc) or type(exc).__name__) from exc

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
