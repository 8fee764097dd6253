"""TemplateCache — downloads OS templates once and reuses them."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlparse

import httpx

from lxc_runner.errors import HostError

logger = logging.getLogger(__name__)


class TemplateCache:
    """Keeps container templates in a local directory.

    A download streams into ``<name>.part`` and is renamed into place only
    once complete, so an interrupted download is never mistaken for a
    cached template.
    """

    def __init__(self, directory: Path, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._directory = directory
        self._transport = transport

    def path_for(self, url: str) -> Path:
        name = Path(urlparse(url).path).name
        if not name:
            raise HostError(f"Cannot derive a template file name from {url}")
        return self._directory / name

    async def ensure(self, url: str) -> Path:
        """Return the local path of the template at *url*, downloading it if needed."""
        target = self.path_for(url)
        if target.is_file():
            logger.info("Template %s already present, skipping download", target.name)
            return target

        logger.info("Downloading template %s", target.name)
        partial = target.with_name(target.name + ".part")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            async with httpx.AsyncClient(transport=self._transport, follow_redirects=True) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with partial.open("wb") as fh:
                        async for chunk in response.aiter_bytes():
                            fh.write(chunk)
        except (httpx.HTTPError, OSError) as exc:
            partial.unlink(missing_ok=True)
            raise HostError(f"Failed to download template {url}: {exc}") from exc

        partial.replace(target)
        return target
