"""HTTP helpers: retry/backoff around requests and a small JSON client base."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

from ..core.errors import UpstreamError

log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "modpack-manager/0.4 (+https://github.com/modpack-manager)"
RETRY_STATUS = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with a Retry-After override."""
    max_attempts: int = 4
    base_delay: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int, response: Optional[requests.Response] = None) -> float:
        """Seconds to wait after the given zero-based attempt."""
        if response is not None:
            retry_after = response.headers.get("Retry-After")
            if retry_after:
                try:
                    return min(max(float(retry_after), 0.0), self.max_delay)
                except ValueError:
                    pass  # HTTP-date form; use backoff
        return min(self.base_delay * (2 ** attempt), self.max_delay)


def request_with_retry(session, method: str, url: str, policy: RetryPolicy = RetryPolicy(),
                       sleep: Callable[[float], None] = time.sleep, **kwargs) -> requests.Response:
    """
    Perform a request, retrying connection errors, timeouts, 429 and 5xx.

    Args:
        session: requests.Session (or anything with a compatible request())
        method: HTTP method
        url: Target URL
        policy: Retry policy
        sleep: Sleep function, replaceable in tests
        **kwargs: Passed through to session.request

    Returns:
        The last response; its status is left for the caller to check

    Raises:
        UpstreamError: If every attempt raised a network error
    """
    last_error = None
    for attempt in range(policy.max_attempts):
        final = attempt == policy.max_attempts - 1
        try:
            response = session.request(method, url, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            last_error = e
            if final:
                break
            delay = policy.delay_for(attempt)
            log.debug("%s %s failed (%s), retrying in %.1fs", method, url, e, delay)
            sleep(delay)
            continue

        if response.status_code in RETRY_STATUS and not final:
            delay = policy.delay_for(attempt, response)
            log.debug("%s %s returned %d, retrying in %.1fs", method, url, response.status_code, delay)
            sleep(delay)
            continue
        return response

    raise UpstreamError(f"{method} {url} failed after {policy.max_attempts} attempts: {last_error}")


class HttpClient:
    """Base class for the upstream API clients."""

    base_url = ""

    def __init__(self, session: Optional[requests.Session] = None,
                 base_url: Optional[str] = None,
                 timeout: float = 15.0,
                 policy: Optional[RetryPolicy] = None,
                 user_agent: str = DEFAULT_USER_AGENT,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Args:
            session: Shared HTTP session; a new one is created if omitted
            base_url: Override the API root
            timeout: Request timeout in seconds
            policy: Retry policy for every request
            user_agent: User-Agent header value
            sleep: Sleep function used between retries
        """
        self.session = session or requests.Session()
        if base_url:
            self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.policy = policy or RetryPolicy()
        self.user_agent = user_agent
        self.sleep = sleep

    def _headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": "application/json"}

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET a JSON document.

        Raises:
            UpstreamError: On network failure, non-200 status or invalid JSON
        """
        if not url.startswith("http"):
            url = f"{self.base_url}/{url.lstrip('/')}"
        response = request_with_retry(
            self.session, "GET", url, self.policy, self.sleep,
            params=params, headers=self._headers(), timeout=self.timeout,
        )
        if response.status_code != 200:
            raise UpstreamError(f"GET {url} returned {response.status_code}", response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"GET {url} returned invalid JSON: {e}") from e
