"""Network retrieval of version manifests and launcher builds."""

from __future__ import annotations

from pathlib import Path

import httpx

from lrctl import constants
from lrctl.errors import FetchWriteError, UnreachableError
from lrctl.logging import get_logger

log = get_logger("lrctl.fetcher")


class RemoteFetcher:
    """Strict HTTP GET client for the launcher's trusted endpoints.

    "Unreachable" (transport failure or non-2xx) is always raised as
    :class:`UnreachableError`, so callers can tell it apart from an empty
    body. Proxy settings are taken from the environment.
    """

    def __init__(self, timeout: float = constants.HTTP_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, follow_redirects=True, trust_env=True)

    def fetch_text(self, url: str) -> str:
        try:
            with self._client() as client:
                resp = client.get(url)
        except httpx.HTTPError as exc:
            log.warning("fetch_failed", url=url, error=str(exc))
            raise UnreachableError(url, str(exc)) from exc

        if not resp.is_success:
            log.warning("fetch_bad_status", url=url, status=resp.status_code)
            raise UnreachableError(url, f"HTTP {resp.status_code}", resp.status_code)
        return resp.text

    def fetch_to_file(self, url: str, dest: str | Path) -> None:
        """Stream the body of ``url`` into ``dest``.

        On failure ``dest`` may hold a partial body; the caller removes it.
        """
        dest_path = Path(dest)
        try:
            with self._client() as client, client.stream("GET", url) as resp:
                if not resp.is_success:
                    log.warning("fetch_bad_status", url=url, status=resp.status_code)
                    raise UnreachableError(url, f"HTTP {resp.status_code}", resp.status_code)
                try:
                    with dest_path.open("wb") as fh:
                        for chunk in resp.iter_bytes(constants.DOWNLOAD_CHUNK_SIZE):
                            fh.write(chunk)
                except OSError as exc:
                    log.warning("fetch_write_failed", path=str(dest_path), error=str(exc))
                    raise FetchWriteError(str(dest_path), str(exc)) from exc
        except httpx.HTTPError as exc:
            log.warning("fetch_failed", url=url, error=str(exc))
            raise UnreachableError(url, str(exc)) from exc

        log.debug("fetch_saved", url=url, path=str(dest_path))

    def check_reachable(self, url: str) -> bool:
        """Probe ``url`` without reading the body.

        Any answer below 500 counts: auth-protected registries reply 401 to
        anonymous probes and are still reachable.
        """
        try:
            with self._client() as client, client.stream("GET", url) as resp:
                reachable = resp.status_code < 500
        except httpx.HTTPError as exc:
            log.debug("probe_failed", url=url, error=str(exc))
            return False
        log.debug("probe_done", url=url, reachable=reachable)
        return reachable
