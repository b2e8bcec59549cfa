import httpx

from .settings import settings

_DEFAULT_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


def build_async_httpx_client(
    timeout: float | None = None, **kwargs
) -> httpx.AsyncClient:
    """Create a configured httpx.AsyncClient for outbound API calls.

    Callers own the client and should use it as an async context manager.
    """
    t = timeout or settings.HTTP_CLIENT_TIMEOUT
    headers = {**_DEFAULT_HEADERS, **kwargs.pop("headers", {})}
    return httpx.AsyncClient(
        timeout=t, follow_redirects=True, headers=headers, **kwargs
    )
