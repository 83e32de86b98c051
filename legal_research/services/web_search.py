"""
Web search client used by the researcher agent.

Wraps the Tavily search API: ``{query, max_results}`` in, a list of
``{title, url, content}`` hits out.
"""

import asyncio
from typing import List, Optional

import aiohttp
import structlog
from pydantic import BaseModel

from .error_handling import SearchProviderError

logger = structlog.get_logger()


class SearchHit(BaseModel):
    """One web search result."""
    title: str = ""
    url: str = ""
    content: str = ""


class WebSearchClient:
    """Async client for the Tavily search endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.tavily.com",
        timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str, max_results: int = 3) -> List[SearchHit]:
        """Run one search query.

        Raises:
            SearchProviderError: on a non-success response or transport failure
        """
        payload = {
            "api_key": self.api_key,
            "query": query,
            "include_answer": True,
            "max_results": max_results,
        }
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    f"{self.base_url}/search",
                    json=payload,
                    headers={"content-type": "application/json"},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise SearchProviderError(query, error_text, status_code=response.status)
                    data = await response.json()
        except asyncio.TimeoutError as e:
            raise SearchProviderError(query, f"timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise SearchProviderError(query, str(e)) from e

        hits = [SearchHit(**{k: r.get(k) or "" for k in ("title", "url", "content")})
                for r in data.get("results") or []]
        logger.info("Web search completed", query=query, hits=len(hits))
        return hits
