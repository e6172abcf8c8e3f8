"""
Resumable single-flight artifact downloads.

Transfers stream into ``<destination>.part`` and are moved into place only once
complete. Concurrent requests for the same destination share one transfer, and
a cancelled transfer leaves its part file behind so the next request resumes it
with an HTTP range request.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import httpx

from .artifacts import format_size, part_path_for
from .errors import DownloadCancelled, NetworkError, OpponentError, err_http_status

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Optional[float]], None]

DEFAULT_CHUNK_SIZE = 64 * 1024


class DownloadPhase(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DownloadState:
    """Observable progress of one destination's transfer."""

    phase: DownloadPhase = DownloadPhase.IDLE
    bytes_written: int = 0
    bytes_total: Optional[int] = None
    reason: Optional[str] = None

    @property
    def fraction(self) -> Optional[float]:
        """Fraction complete, or None when the total size is unknown."""

        if self.phase is DownloadPhase.COMPLETED:
            return 1.0
        if not self.bytes_total or self.bytes_total <= 0:
            return None
        return min(max(self.bytes_written / self.bytes_total, 0.0), 1.0)


@dataclass
class _Transfer:
    url: str
    destination: Path
    listeners: List[ProgressCallback] = field(default_factory=list)
    state: DownloadState = field(default_factory=DownloadState)
    task: Optional["asyncio.Task[Path]"] = None
    last_emit: float = 0.0
    last_milestone: int = -1


class DownloadCoordinator:
    """Fetch remote artifacts with resume, progress and per-destination single-flight."""

    def __init__(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress_interval: float = 0.25,
        connect_timeout: float = 30.0,
        read_timeout: float = 300.0,
    ) -> None:
        self.chunk_size = chunk_size
        self.progress_interval = progress_interval
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
        )
        self._transfers: Dict[Path, _Transfer] = {}
        self._states: Dict[Path, DownloadState] = {}

    @staticmethod
    def _key(destination: Union[str, Path]) -> Path:
        return Path(destination).expanduser().absolute()

    async def aclose(self) -> None:
        self.cancel()
        if self._owns_client:
            await self._client.aclose()

    def state(self, destination: Union[str, Path]) -> DownloadState:
        key = self._key(destination)
        transfer = self._transfers.get(key)
        if transfer is not None:
            return transfer.state
        return self._states.get(key, DownloadState())

    def is_active(self, destination: Union[str, Path]) -> bool:
        return self._key(destination) in self._transfers

    async def ensure_file(
        self,
        url: str,
        destination: Union[str, Path],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """Return ``destination``, downloading it first when it does not exist."""

        key = self._key(destination)
        if key.exists():
            logger.info("Model file already exists: %s", key.name)
            self._states[key] = DownloadState(DownloadPhase.COMPLETED)
            _notify(on_progress, 1.0)
            return key

        transfer = self._transfers.get(key)
        if transfer is None:
            transfer = _Transfer(url=url, destination=key)
            transfer.task = asyncio.create_task(self._run(transfer))
            self._transfers[key] = transfer
            transfer.task.add_done_callback(lambda t: self._finish(transfer, t))
        else:
            logger.info("Attaching to in-flight download of %s", key.name)

        if on_progress is not None:
            transfer.listeners.append(on_progress)
            if transfer.state.phase is DownloadPhase.IN_PROGRESS:
                _notify(on_progress, transfer.state.fraction)

        task = transfer.task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise DownloadCancelled() from None
            raise
        finally:
            if on_progress is not None and on_progress in transfer.listeners:
                transfer.listeners.remove(on_progress)

    def cancel(self, destination: Union[str, Path, None] = None) -> bool:
        """Abort one transfer (or all of them). Part files are kept for resume."""

        if destination is None:
            targets = list(self._transfers.values())
        else:
            transfer = self._transfers.get(self._key(destination))
            targets = [transfer] if transfer is not None else []
        for transfer in targets:
            if transfer.task is not None and not transfer.task.done():
                logger.info("Cancelling download of %s", transfer.destination.name)
                transfer.task.cancel()
        return bool(targets)

    def _finish(self, transfer: _Transfer, task: "asyncio.Task[Path]") -> None:
        if not task.cancelled():
            # Mark the outcome retrieved; awaiting callers re-raise it themselves.
            task.exception()
        if self._transfers.get(transfer.destination) is transfer:
            del self._transfers[transfer.destination]
        self._states[transfer.destination] = transfer.state

    async def _run(self, transfer: _Transfer) -> Path:
        destination = transfer.destination
        part = part_path_for(destination)
        try:
            path = await self._download(transfer, part)
        except asyncio.CancelledError:
            transfer.state = replace(transfer.state, phase=DownloadPhase.CANCELLED)
            raise
        except OpponentError as exc:
            transfer.state = replace(
                transfer.state, phase=DownloadPhase.FAILED, reason=exc.message
            )
            raise
        except OSError as exc:
            transfer.state = replace(
                transfer.state, phase=DownloadPhase.FAILED, reason=str(exc)
            )
            raise
        transfer.state = replace(transfer.state, phase=DownloadPhase.COMPLETED)
        self._emit(transfer, 1.0)
        return path

    async def _download(self, transfer: _Transfer, part: Path) -> Path:
        url = transfer.url
        destination = transfer.destination
        destination.parent.mkdir(parents=True, exist_ok=True)

        offset = part.stat().st_size if part.exists() else 0
        headers = {"Accept-Encoding": "identity"}
        if offset > 0:
            headers["Range"] = f"bytes={offset}-"
            logger.info("Resuming download of %s from byte %d", destination.name, offset)
        else:
            logger.info("Downloading %s from %s", destination.name, url)

        try:
            async with self._client.stream("GET", url, headers=headers) as response:
                status = response.status_code
                if status == 416 and offset > 0:
                    # The part file no longer matches the remote artifact.
                    part.unlink(missing_ok=True)
                    raise err_http_status(url, status)
                if not 200 <= status <= 206:
                    raise err_http_status(url, status)
                if offset > 0 and status != 206:
                    logger.warning(
                        "Server ignored range request for %s; restarting", destination.name
                    )
                    offset = 0

                total = _total_size(response, offset)
                if total is None:
                    logger.warning(
                        "No Content-Length for %s - progress is indeterminate",
                        destination.name,
                    )
                else:
                    logger.info("Total size of %s: %s", destination.name, format_size(total))

                written = offset
                transfer.state = DownloadState(DownloadPhase.IN_PROGRESS, written, total)
                self._publish(transfer, force=True)
                with part.open("ab" if offset > 0 else "wb") as fh:
                    async for chunk in response.aiter_bytes(self.chunk_size):
                        await asyncio.to_thread(fh.write, chunk)
                        written += len(chunk)
                        transfer.state = replace(transfer.state, bytes_written=written)
                        self._publish(transfer)
        except httpx.HTTPError as exc:
            raise NetworkError(f"Network error while downloading '{url}': {exc}") from exc

        await asyncio.to_thread(_promote, part, destination)
        logger.info("Download complete: %s", destination.name)
        return destination

    def _publish(self, transfer: _Transfer, *, force: bool = False) -> None:
        fraction = transfer.state.fraction
        if fraction is not None:
            milestone = int(fraction * 10)
            if milestone > transfer.last_milestone:
                transfer.last_milestone = milestone
                logger.info(
                    "Download progress %s: %d%% (%s/%s)",
                    transfer.destination.name,
                    milestone * 10,
                    format_size(transfer.state.bytes_written),
                    format_size(transfer.state.bytes_total or 0),
                )
        now = time.monotonic()
        if not force and now - transfer.last_emit < self.progress_interval:
            return
        transfer.last_emit = now
        self._emit(transfer, fraction)

    def _emit(self, transfer: _Transfer, fraction: Optional[float]) -> None:
        for listener in list(transfer.listeners):
            _notify(listener, fraction)


def _promote(part: Path, destination: Path) -> None:
    if destination.exists():
        destination.unlink()
    os.replace(part, destination)


def _total_size(response: httpx.Response, offset: int) -> Optional[int]:
    raw = response.headers.get("Content-Length")
    if raw is None or not raw.strip().isdigit():
        return None
    return offset + int(raw)


def _notify(callback: Optional[ProgressCallback], value: Optional[float]) -> None:
    if callback is None:
        return
    try:
        callback(value)
    except Exception:  # noqa: BLE001 - observers must not break the transfer
        logger.exception("Download progress listener failed")


__all__ = [
    "DownloadCoordinator",
    "DownloadPhase",
    "DownloadState",
    "ProgressCallback",
]
