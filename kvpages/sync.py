"""
KV Pages - Sync Poller

Mirrors a remote HTTP file listing into a local directory.  The remote side
exposes two endpoints:

    GET {base}/list        -> [{"name": "a.txt"}, {"name": "dir/b.bin"}, ...]
    GET {base}/{filename}  -> raw bytes

Requests carry no credentials, so the listing must be public.  A KV Pages
instance is not a valid source: its /api/list names pages rather than files
and sits behind the login gate.

One *pass* fetches the listing and downloads every file.  A failed download
is logged and skipped; a failed listing aborts the pass.  ``start()`` runs
passes forever on a fixed interval until ``stop()`` cancels the task.

Also usable from the command line::

    kvpages-sync --url https://files.example.com --dest ./mirror --interval 60
    kvpages-sync --url https://files.example.com --dest ./mirror --once
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote

import aiofiles
import httpx
from loguru import logger

from kvpages.config import SYNC_INTERVAL, SYNC_LIST_PATH, SYNC_LOCAL_DIR, SYNC_SOURCE_URL


@dataclass
class SyncResult:
    """Outcome of a single sync pass."""

    total: int = 0
    downloaded: int = 0
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "downloaded": self.downloaded,
            "failed": list(self.failed),
        }


class SyncPoller:
    """Periodic one-way mirror of a remote ``/list`` + ``/{filename}`` host."""

    def __init__(
        self,
        base_url: str,
        local_dir: Path | str,
        *,
        interval: float = 60,
        list_path: str = "/list",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.local_dir = Path(local_dir)
        self.interval = interval
        self.list_path = "/" + list_path.lstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the polling loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "🔄 Sync poller started: {} -> {} (every {}s)",
            self.base_url,
            self.local_dir,
            self.interval,
        )

    async def stop(self) -> None:
        """Cancel the polling loop and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("🔄 Sync poller stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Try again next interval
                logger.error("❌ Sync pass error: {}", e)
            await asyncio.sleep(self.interval)

    # ------------------------------------------------------------------
    # A single pass
    # ------------------------------------------------------------------
    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _fetch_listing(self, client: httpx.AsyncClient) -> list[str]:
        url = f"{self.base_url}{self.list_path}"
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error("❌ Listing request failed for {}: {}", url, e)
            return []

        if response.status_code != 200:
            logger.error("❌ Listing failed ({}) for {}", response.status_code, url)
            return []

        try:
            items = response.json()
        except ValueError as e:
            logger.error("❌ Listing from {} is not valid JSON: {}", url, e)
            return []

        if not isinstance(items, list):
            logger.error("❌ Listing from {} is not a JSON array", url)
            return []

        return [
            item["name"]
            for item in items
            if isinstance(item, dict) and isinstance(item.get("name"), str) and item["name"]
        ]

    def _local_path(self, name: str) -> Path | None:
        """Resolve *name* under local_dir; None if it would escape it."""
        root = self.local_dir.resolve()
        target = (root / name).resolve()
        if target == root or root not in target.parents:
            return None
        return target

    async def _download(self, client: httpx.AsyncClient, name: str) -> bool:
        target = self._local_path(name)
        if target is None:
            logger.warning("⚠️ Skipping unsafe remote name: {}", name)
            return False

        url = f"{self.base_url}/{quote(name, safe='/')}"
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning("⚠️ Failed to download {}: {}", name, e)
            return False

        if response.status_code != 200:
            logger.warning("⚠️ Failed to download {} ({})", name, response.status_code)
            return False

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target, "wb") as f:
                await f.write(response.content)
        except OSError as e:
            logger.warning("⚠️ Failed to write {}: {}", target, e)
            return False

        logger.debug("⬇️ Downloaded {} ({} bytes)", name, len(response.content))
        return True

    async def run_once(self) -> SyncResult:
        """Run one sync pass and return its tally."""
        logger.info("🔄 Starting sync from {} to {}", self.base_url, self.local_dir)
        self.local_dir.mkdir(parents=True, exist_ok=True)
        result = SyncResult()

        async with self._client() as client:
            names = await self._fetch_listing(client)
            if not names:
                logger.warning("⚠️ No files found or listing error — skipping this pass")
                return result

            for name in names:
                result.total += 1
                if await self._download(client, name):
                    result.downloaded += 1
                else:
                    result.failed.append(name)

        logger.info(
            "✅ Sync completed: {}/{} files downloaded", result.downloaded, result.total
        )
        return result


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Mirror a remote /list + /{filename} HTTP listing into a local directory."
    )
    parser.add_argument(
        "--url",
        default=SYNC_SOURCE_URL,
        help="Base URL of the remote host (default: SYNC_SOURCE_URL)",
    )
    parser.add_argument(
        "--dest",
        default=str(SYNC_LOCAL_DIR),
        help="Local directory to write files into (default: SYNC_LOCAL_DIR)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=SYNC_INTERVAL,
        help="Seconds between passes (default: SYNC_INTERVAL)",
    )
    parser.add_argument(
        "--list-path",
        default=SYNC_LIST_PATH,
        help="Path of the listing endpoint (default: SYNC_LIST_PATH)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass and exit",
    )
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    poller = SyncPoller(
        args.url, args.dest, interval=args.interval, list_path=args.list_path
    )
    if args.once:
        result = await poller.run_once()
        return 0 if result.total and not result.failed else 1

    poller.start()
    try:
        # Runs until the process is interrupted
        await asyncio.Event().wait()
    finally:
        await poller.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if not args.url:
        print("error: --url (or SYNC_SOURCE_URL) is required", file=sys.stderr)
        return 2
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("👋 Sync stopped")
        return 0


if __name__ == "__main__":
    sys.exit(main())
