"""
Download of package files once their direct download URI is known.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

import aiofiles
import httpx

from discocache.data.models import ClientConfig
from discocache.services.events import DownloadEvt, EventBus, EvtType

logger = logging.getLogger(__name__)


class DownloadManager:
    """
    Runs downloads as asyncio tasks that share one concurrency limit.

    Each download reports DOWNLOAD_STARTED, DOWNLOAD_PROGRESS and either
    DOWNLOAD_FINISHED or DOWNLOAD_FAILED through the event bus.
    """

    def __init__(
        self,
        events: EventBus,
        config: ClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.events = events
        self.config = config
        self._transport = transport
        self._semaphore: Optional[asyncio.Semaphore] = None

    def _limit(self) -> asyncio.Semaphore:
        # Created lazily so it binds to the loop the downloads run on.
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.config.max_concurrent_downloads)
        return self._semaphore

    def submit(self, uri: str, target: Union[str, Path]) -> "asyncio.Task[bool]":
        """
        Schedule a download and return its task; cancel the task to abort.

        Must be called from a running event loop.
        """
        return asyncio.create_task(self._run(uri, Path(target)))

    async def _run(self, uri: str, target: Path) -> bool:
        async with self._limit():
            return await self._download(uri, target)

    def _fire(self, evt_type: EvtType, uri: str, target: Path, **fields) -> None:
        self.events.fire_evt(DownloadEvt(evt_type, source=self, uri=uri, target=str(target), **fields))

    async def _download(self, uri: str, target: Path) -> bool:
        tmp_path = target.with_name(f"{target.name}.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if tmp_path.exists():
                tmp_path.unlink()

            async with httpx.AsyncClient(
                follow_redirects=True,
                timeout=self.config.request_timeout_seconds,
                transport=self._transport,
            ) as client:
                async with client.stream("GET", uri) as response:
                    response.raise_for_status()

                    total_size = int(response.headers.get("content-length", 0))
                    downloaded = 0
                    self._fire(EvtType.DOWNLOAD_STARTED, uri, target, file_size=total_size)

                    async with aiofiles.open(tmp_path, "wb") as f:
                        async for chunk in response.aiter_bytes(self.config.download_chunk_size):
                            await f.write(chunk)
                            downloaded += len(chunk)
                            if total_size > 0:
                                self._fire(
                                    EvtType.DOWNLOAD_PROGRESS,
                                    uri,
                                    target,
                                    file_size=total_size,
                                    bytes_downloaded=downloaded,
                                    fraction=downloaded / total_size,
                                )

            # Move temp file into place.
            tmp_path.replace(target)
        except asyncio.CancelledError:
            tmp_path.unlink(missing_ok=True)
            logger.info(f"Download of {uri} cancelled")
            raise
        except (httpx.HTTPError, OSError) as e:
            tmp_path.unlink(missing_ok=True)
            logger.error(f"Download of {uri} failed: {e}")
            self._fire(EvtType.DOWNLOAD_FAILED, uri, target, error=str(e))
            return False

        logger.info(f"Downloaded {uri} to {target} ({downloaded} bytes)")
        self._fire(
            EvtType.DOWNLOAD_FINISHED,
            uri,
            target,
            file_size=total_size or downloaded,
            bytes_downloaded=downloaded,
            fraction=1.0,
        )
        return True
