"""Rate-limited, timeout-bounded product page fetching.

One outbound request per call. Retries are not performed here; the
orchestrator decides whether a failure is worth another attempt.
"""

from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

import httpx
import structlog

from pricewatch.config import Settings
from pricewatch.core.exceptions import FetchError
from pricewatch.scrapers.base import RawContent
from pricewatch.scrapers.utils.rate_limiter import DomainRateLimiter
from pricewatch.scrapers.utils.user_agents import get_random_user_agent


logger = structlog.get_logger(__name__)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
}


class PageFetcher:
    """Fetch product pages directly from the store over HTTP(S).

    Politeness is keyed on the target host: consecutive requests to the
    same host are spaced by the rate limiter's delay.
    """

    def __init__(
        self,
        settings: Settings,
        rate_limiter: Optional[DomainRateLimiter] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the fetcher.

        Args:
            settings: Application settings (user agent, timeout, delay)
            rate_limiter: Per-host limiter, built from SCRAPER_REQUEST_DELAY if omitted
            client: Shared HTTP client; created and owned by the fetcher if omitted
        """
        self.settings = settings
        self.rate_limiter = rate_limiter or DomainRateLimiter(settings.SCRAPER_REQUEST_DELAY)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(follow_redirects=True)
        self.logger = logger.bind(service="fetcher")

    async def fetch(
        self,
        url: str,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
    ) -> RawContent:
        """Download a product page.

        Args:
            url: Product page URL
            timeout: Per-request timeout in seconds, defaults to SCRAPER_REQUEST_TIMEOUT
            user_agent: User-Agent header, defaults to SCRAPER_USER_AGENT
                (a random one from the pool when that is empty)

        Returns:
            RawContent of the page

        Raises:
            FetchError: network failure, timeout, or non-2xx status
        """
        host = (urlparse(url).hostname or "").lower()
        await self.rate_limiter.acquire(host)

        request_url, params = self._build_request(url)
        headers = dict(DEFAULT_HEADERS)
        headers["User-Agent"] = user_agent or self.settings.SCRAPER_USER_AGENT or get_random_user_agent()
        timeout = timeout if timeout is not None else self.settings.SCRAPER_REQUEST_TIMEOUT

        self.logger.debug("fetching_url", url=url, host=host)

        try:
            response = await self.client.get(
                request_url,
                params=params,
                headers=headers,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise FetchError.timeout(url, str(e) or "request timed out") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError.network(url, str(e) or type(e).__name__) from e

        if not response.is_success:
            self.logger.warning("fetch_http_error", url=url, status_code=response.status_code)
            raise FetchError.http_status(url, response.status_code)

        return RawContent(
            url=url,
            text=response.text,
            status_code=response.status_code,
            final_url=self._final_url(url, response),
        )

    def _build_request(self, url: str) -> Tuple[str, Optional[Dict[str, Any]]]:
        return url, None

    def _final_url(self, url: str, response: httpx.Response) -> str:
        return str(response.url)

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "PageFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class ScraperAPIFetcher(PageFetcher):
    """Fetch pages through ScraperAPI, which handles proxies and JS rendering.

    Documentation: https://www.scraperapi.com/documentation/
    """

    API_BASE_URL = "http://api.scraperapi.com"

    def __init__(
        self,
        settings: Settings,
        rate_limiter: Optional[DomainRateLimiter] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(settings, rate_limiter, client)
        self.api_key = settings.SCRAPERAPI_KEY
        self.render = settings.SCRAPERAPI_RENDER
        self.logger = logger.bind(service="scraperapi_fetcher")

    def _build_request(self, url: str) -> Tuple[str, Optional[Dict[str, Any]]]:
        params = {"api_key": self.api_key, "url": url}
        if self.render:
            params["render"] = "true"
        return self.API_BASE_URL, params

    def _final_url(self, url: str, response: httpx.Response) -> str:
        # The response URL is the API endpoint, which carries the key
        return url


def create_fetcher(
    settings: Settings,
    rate_limiter: Optional[DomainRateLimiter] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> PageFetcher:
    """Create the fetcher selected by configuration.

    Returns:
        ScraperAPIFetcher when SCRAPERAPI_KEY is set, else PageFetcher
    """
    if settings.SCRAPERAPI_KEY:
        logger.info("fetcher_initialized", backend="scraperapi", render=settings.SCRAPERAPI_RENDER)
        return ScraperAPIFetcher(settings, rate_limiter, client)

    logger.info("fetcher_initialized", backend="direct", delay=settings.SCRAPER_REQUEST_DELAY)
    return PageFetcher(settings, rate_limiter, client)
