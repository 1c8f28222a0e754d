# src/linkcheck/services/http_request_service.py
import asyncio
import logging
import time
from typing import Dict, Optional

import aiohttp

from linkcheck.services.generate_default_user_agent_service import generate_default_user_agent

logger = logging.getLogger(__name__)

REDIRECT_CODES = (301, 302, 303, 307, 308)


class HttpRequestService:
    """
    Central service for executing HTTP requests (GET/HEAD).
    Manages the aiohttp session, concurrency (semaphore), and error handling.

    Requests never raise for network trouble: failures come back as a dict
    with a negative 'status' and an 'error' message.
    """

    def __init__(self, config: Optional[Dict] = None, user_agent: Optional[str] = None):
        self.config = config or {}
        self.user_agent = user_agent or generate_default_user_agent()

        session_config = self.config.get('session', {})
        self.max_concurrency = int(session_config.get('concurrency', 20))
        self.timeout = int(session_config.get('time_out', 15))
        self.max_redirects = int(session_config.get('max_redirects', 10))
        self.hop_timeout = int(session_config.get('max_timeout_redirects', 5))

        self.semaphore = asyncio.Semaphore(self.max_concurrency)
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        if not self.session or self.session.closed:
            timeout_obj = aiohttp.ClientTimeout(total=self.timeout)
            default_headers = {
                'Accept-Encoding': 'gzip, deflate',
                'User-Agent': self.user_agent
            }
            self.session = aiohttp.ClientSession(
                timeout=timeout_obj, headers=default_headers
            )
            logger.debug("HttpRequestService: Session initialized.")

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
            logger.debug("HttpRequestService: Session closed.")

    async def request_hop(self, url: str, method: str = "HEAD") -> dict:
        """
        Performs exactly one request without following redirects.

        Returns:
            dict: 'status' (HTTP status, or -1 for client/timeout errors and -2
            for anything else), 'location' for redirects, 'error' on failure
            and 'elapsed_time' in seconds.
        """
        start_time = time.perf_counter()
        await self.initialize()

        response_data: dict
        try:
            async with self.semaphore:
                async with self.session.request(
                        method.upper(),
                        url,
                        allow_redirects=False,
                        timeout=aiohttp.ClientTimeout(total=self.hop_timeout)
                ) as response:
                    response_data = {
                        "status": response.status,
                        "location": response.headers.get("Location"),
                        "final_url": str(response.url),
                    }
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            response_data = {"status": -1, "error": f"{type(e).__name__}: {e}"}
        except ValueError as e:
            # yarl/aiohttp reject URLs they cannot even build a request for
            response_data = {"status": -2, "error": f"Invalid URL: {e}"}

        response_data["elapsed_time"] = round(time.perf_counter() - start_time, 4)
        logger.debug("%s %s -> %s", method.upper(), url, response_data["status"])
        return response_data

    async def fetch_text(self, url: str) -> dict:
        """
        Fetches a document body with GET, letting aiohttp follow redirects.

        Returns:
            dict: 'status', 'content' (None unless 2xx), 'final_url', 'error'.
        """
        await self.initialize()
        try:
            async with self.semaphore:
                async with self.session.get(
                        url,
                        allow_redirects=True,
                        max_redirects=self.max_redirects
                ) as response:
                    content = None
                    if 200 <= response.status < 300:
                        try:
                            content = await response.text()
                        except UnicodeDecodeError:
                            content_bytes = await response.read()
                            content = content_bytes.decode('utf-8', errors='replace')
                    return {
                        "status": response.status,
                        "content": content,
                        "final_url": str(response.url),
                        "error": None if content is not None else f"HTTP {response.status}",
                    }
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Error fetching %s: %s", url, e)
            return {"status": -1, "content": None, "final_url": url, "error": f"{type(e).__name__}: {e}"}
