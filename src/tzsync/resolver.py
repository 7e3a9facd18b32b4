"""Geo-IP timezone lookup over HTTP."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aiohttp

from tzsync.config import TzSyncConfig
from tzsync.exceptions import TimezoneLookupError

_logger = logging.getLogger(__name__)


class Resolver(Protocol):
    async def resolve(self) -> str:
        ...


class TimezoneResolver:
    """Maps the host's public IP address to an IANA timezone name.

    A single GET per call, no retry. The response body is the timezone
    name; surrounding whitespace is stripped and nothing else is checked.
    """

    def __init__(self, config: TzSyncConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.lookup_timeout)

    async def resolve(self) -> str:
        url = self._config.geoip_url
        headers = {"user-agent": self._config.user_agent, "accept": "text/plain"}

        _logger.debug("GET %s", url)

        try:
            async with self._http.get(url, headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise TimezoneLookupError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        url=url,
                    )
        except TimezoneLookupError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TimezoneLookupError(f"Request to {url} failed: {exc!r}", url=url) from exc
        except UnicodeDecodeError as exc:
            raise TimezoneLookupError(f"Unreadable response body from {url}: {exc}", url=url) from exc

        timezone = text.strip()
        if not timezone:
            raise TimezoneLookupError(f"Empty response body from {url}", status_code=resp.status, url=url)
        return timezone
