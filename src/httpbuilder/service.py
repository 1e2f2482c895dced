"""Base class for HTTP services built on the request pipeline.

HttpService owns an ``httpx.AsyncClient`` and is itself the RequestObserver
of every builder it creates, so a concrete service customizes the pipeline by
overriding observer hooks:

    >>> class GitHubService(HttpService):
    ...     def on_building_started(self, builder):
    ...         builder.with_header("Accept", "application/vnd.github+json")
    ...
    ...     def build_http_error_message(self, builder, response, error):
    ...         return f"GitHub answered {response.status_code} for {builder.uri_string}"
    ...
    ...     async def repo(self, owner: str, name: str) -> Repo:
    ...         return await (
    ...             self.build(f"repos/{owner}/{name}")
    ...             .send()
    ...             .as_validated_success()
    ...             .as_json(Repo)
    ...         )
    >>>
    >>> async with GitHubService(ServiceConfig(base_url="https://api.github.com")) as github:
    ...     repo = await github.repo("encode", "httpx")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import TracebackType

import httpx

from httpbuilder.models.constants import DEFAULT_TIMEOUT_SECONDS
from httpbuilder.observability import env_flag, get_logger
from httpbuilder.request.builder import RequestBuilder
from httpbuilder.request.observer import RequestObserver
from httpbuilder.transport.counters import RequestCounters

logger = get_logger(__name__)

# Environment variable names
ENV_BASE_URL = "HTTPBUILDER_BASE_URL"
ENV_TIMEOUT = "HTTPBUILDER_TIMEOUT"
ENV_FOLLOW_REDIRECTS = "HTTPBUILDER_FOLLOW_REDIRECTS"


@dataclass
class ServiceConfig:
    """Configuration of the client owned by an HttpService.

    Attributes:
        base_url: URL relative request paths are resolved against
        timeout: Request timeout in seconds
        headers: Headers sent with every request
        follow_redirects: Whether the client follows redirects
    """

    base_url: str = ""
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    headers: dict[str, str] = field(default_factory=dict)
    follow_redirects: bool = False

    @classmethod
    def from_env(cls) -> ServiceConfig:
        """Build a configuration from HTTPBUILDER_* environment variables.

        Raises:
            ValueError: If HTTPBUILDER_TIMEOUT is not a number
        """
        timeout = os.environ.get(ENV_TIMEOUT)
        return cls(
            base_url=os.environ.get(ENV_BASE_URL, ""),
            timeout=float(timeout) if timeout else DEFAULT_TIMEOUT_SECONDS,
            follow_redirects=env_flag(ENV_FOLLOW_REDIRECTS),
        )


class HttpService(RequestObserver):
    """An HTTP client service that observes its own requests.

    Use as an async context manager, or call aclose() when done.

    Attributes:
        config: Client configuration
        client: The owned httpx.AsyncClient
        counters: Dispatch counters for builders created by this service
            (None uses the process-wide counters)
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        counters: RequestCounters | None = None,
    ) -> None:
        """Create the service and its client.

        Args:
            config: Client configuration (defaults to ServiceConfig.from_env())
            transport: Optional custom async transport (for testing), e.g.
                httpx.MockTransport
            counters: Dispatch counters shared by the service's builders
        """
        self.config = config if config is not None else ServiceConfig.from_env()
        self.counters = counters
        self.client = self.create_client(transport)
        self.configure_client(self.client)

    def create_client(self, transport: httpx.AsyncBaseTransport | None) -> httpx.AsyncClient:
        """Create the client. Override to supply a differently built client."""
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            headers=self.config.headers,
            follow_redirects=self.config.follow_redirects,
            transport=transport,
        )

    def configure_client(self, client: httpx.AsyncClient) -> None:
        """Adjust the freshly created client (default: nothing)."""

    def build(self, path: str = "") -> RequestBuilder:
        """Start building a request to ``path``.

        Args:
            path: Path relative to the base URL, or an absolute URL

        Returns:
            A new RequestBuilder observed by this service
        """
        builder = RequestBuilder(self, self.client, path, counters=self.counters)
        self.on_building_started(builder)
        return builder

    def on_building_started(self, builder: RequestBuilder) -> None:
        """Called on every new builder, before it is returned by build()."""

    @property
    def is_closed(self) -> bool:
        return self.client.is_closed

    async def aclose(self) -> None:
        if not self.client.is_closed:
            logger.debug(
                "httpbuilder.service.closed",
                base_url=self.config.base_url,
            )
            await self.client.aclose()

    async def __aenter__(self) -> HttpService:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()
