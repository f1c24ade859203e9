"""Drive scanner: full and delta enumeration of the artwork tree.

Tree layout is ``ROOT/<artist>/<quality bucket>/<file>``. A bucket whose
name contains "above" holds high-quality files. The scanner never
downloads file bodies; everything comes from listing metadata.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from printbrain.database import SessionLocal, session_scope
from printbrain.services import asset_service
from printbrain.services.concurrency import BoundedPool, backoff_delay, retry_async
from printbrain.services.filename_parser import (
    is_image_file,
    parse_filename,
    quality_tier_for,
    should_skip,
)
from printbrain.services.sync_state import SyncStateStore
from printbrain.storage.base import (
    FOLDER_MIME_TYPE,
    BaseFileTreeDriver,
    FileInfo,
    StorageConnectionError,
    StorageError,
    StorageRateLimitError,
)

logger = logging.getLogger(__name__)

FOLDER_FIELDS = "nextPageToken, files(id, name)"
FILE_FIELDS = "nextPageToken, files(id, name, mimeType, size, md5Checksum, imageMediaMetadata(width, height, rotation))"
CHANGE_FIELDS = (
    "nextPageToken, newStartPageToken, changes(fileId, removed, "
    "file(id, name, mimeType, size, md5Checksum, parents, trashed, "
    "imageMediaMetadata(width, height, rotation)))"
)
PARENT_FIELDS = "id, name, parents"

MAX_ATTEMPTS = 5
MAX_ANCESTRY_DEPTH = 5
INSERT_BATCH_SIZE = 500
INSERT_CONCURRENCY = 5


def is_transient(error: Exception) -> bool:
    """Timeouts, resets, DNS failures and HTTP 429/500/503 are retried."""
    return isinstance(error, (StorageConnectionError, StorageRateLimitError))


def retry_delay(attempt: int, error: Exception) -> float:
    """Back-off before the next attempt, never shorter than a server's Retry-After."""
    wait = backoff_delay(attempt, base=1.0, cap=30.0)
    retry_after = getattr(error, "retry_after", None)
    if retry_after:
        return max(retry_after, wait)
    return wait


@dataclass
class ScanResult:
    """Summary of one scanner run."""

    inserted: int = 0
    skipped: int = 0
    errors: int = 0
    total_in_db: int = 0
    elapsed: float = 0.0
    mode: str = "full"
    files_found: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Ancestry:
    """Artist and tier resolved by walking a file's parents."""

    artist: str = ""
    quality_tier: str = ""
    file_path: str = ""


class DriveScanner:
    """Discover image files under the root folder and ingest new ones.

    Example:
        >>> scanner = DriveScanner(driver, root_folder_id="abc", token_store=store)
        >>> result = await scanner.run_once()
        >>> result["mode"]
        'delta'
    """

    def __init__(
        self,
        driver: BaseFileTreeDriver,
        root_folder_id: str,
        token_store: SyncStateStore,
        session_factory: Callable[[], Session] = SessionLocal,
        concurrency: int = 30,
        insert_batch_size: int = INSERT_BATCH_SIZE,
        insert_concurrency: int = INSERT_CONCURRENCY,
        use_image_metadata: bool = False,
    ):
        self.driver = driver
        self.root_folder_id = root_folder_id
        self.token_store = token_store
        self.session_factory = session_factory
        self.concurrency = concurrency
        self.insert_batch_size = insert_batch_size
        self.insert_concurrency = insert_concurrency
        self.use_image_metadata = use_image_metadata
        self.is_running = False
        self._parent_cache: Dict[str, Dict[str, Any]] = {}

    async def _call(self, fn: Callable, label: str, attempts: int = MAX_ATTEMPTS):
        return await retry_async(
            fn,
            attempts=attempts,
            is_retryable=is_transient,
            delay=retry_delay,
            label=label,
        )

    async def _list_all(self, query: str, fields: str, page_size: int, label: str) -> List[FileInfo]:
        """List every page of a files query."""
        files: List[FileInfo] = []
        page_token: Optional[str] = None
        while True:
            page = await self._call(
                lambda: self.driver.list_files(query, fields, page_size, page_token),
                label,
            )
            files.extend(FileInfo(f) for f in page.get("files", []))
            page_token = page.get("nextPageToken")
            if not page_token:
                return files

    def _file_record(self, file: FileInfo, artist: str, quality_tier: str, path: str) -> Dict[str, Any]:
        parsed = parse_filename(file.name)
        width, height = parsed.width, parsed.height
        if not parsed.has_dimensions and self.use_image_metadata:
            width, height = _metadata_dimensions(file)
        return {
            "id": file.id,
            "name": file.name,
            "mime_type": file.mime_type,
            "size": file.size_bytes,
            "md5": file.md5,
            "path": path,
            "artist": artist,
            "quality_tier": quality_tier,
            "title": parsed.title,
            "width": width,
            "height": height,
        }

    # ------------------------------------------------------------------
    # Full enumeration
    # ------------------------------------------------------------------

    async def full_scan(self) -> Tuple[List[Dict[str, Any]], int]:
        """Enumerate the whole tree, saving a change token if no folder failed.

        Returns:
            Tuple of (file records, number of artist folders that failed)
        """
        root = self.root_folder_id
        artists = await self._list_all(
            f"'{root}' in parents and trashed = false and mimeType = '{FOLDER_MIME_TYPE}'",
            FOLDER_FIELDS,
            1000,
            "list artist folders",
        )
        logger.info(f"Full scan: {len(artists)} artist folders under {root}")

        async def scan_artist(artist: FileInfo) -> List[Dict[str, Any]]:
            tiers = await self._list_all(
                f"'{artist.id}' in parents and trashed = false and mimeType = '{FOLDER_MIME_TYPE}'",
                FOLDER_FIELDS,
                10,
                f"list tiers of {artist.name}",
            )
            records = []
            for tier in tiers:
                quality_tier = quality_tier_for(tier.name)
                files = await self._list_all(
                    f"'{tier.id}' in parents and trashed = false",
                    FILE_FIELDS,
                    1000,
                    f"list files of {artist.name}/{tier.name}",
                )
                for file in files:
                    if file.is_folder or should_skip(file.name):
                        continue
                    if not is_image_file(file.name, file.mime_type):
                        continue
                    records.append(
                        self._file_record(
                            file,
                            artist.name,
                            quality_tier,
                            f"{artist.name}/{tier.name}/{file.name}",
                        )
                    )
            return records

        pool = BoundedPool(self.concurrency)
        results = await pool.map(scan_artist, artists, return_exceptions=True)

        collected: List[Dict[str, Any]] = []
        failures = 0
        for artist, result in zip(artists, results):
            if isinstance(result, Exception):
                failures += 1
                logger.error(f"Failed to scan artist folder {artist.name}: {result}")
                continue
            collected.extend(result)

        # The next run stays full until every artist folder lists cleanly.
        if failures:
            logger.warning(f"Not saving change token: {failures} artist folders failed, next run rescans fully")
        else:
            start_token = await self._call(self.driver.get_start_page_token, "get start page token")
            self.token_store.save(start_token)
        logger.info(f"Full scan complete: {len(collected)} images, {failures} artist failures")
        return collected, failures

    # ------------------------------------------------------------------
    # Delta enumeration
    # ------------------------------------------------------------------

    async def resolve_ancestry(self, file_id: str) -> Ancestry:
        """Walk up to five parents to find the artist and tier of a file.

        Files whose ancestry never reaches the root folder resolve to an
        empty artist.
        """
        chain: List[Dict[str, Any]] = []
        current_id: Optional[str] = file_id
        depth = 0

        while current_id and depth < MAX_ANCESTRY_DEPTH:
            node = self._parent_cache.get(current_id)
            if node is None:
                try:
                    info = await self._call(
                        lambda: self.driver.get_file(current_id, PARENT_FIELDS),
                        f"get parent {current_id}",
                        attempts=3,
                    )
                except (StorageError, FileNotFoundError) as e:
                    logger.debug(f"Ancestry lookup stopped at {current_id}: {e}")
                    break
                node = {
                    "id": current_id,
                    "name": info.name,
                    "parent_id": info.parents[0] if info.parents else None,
                }
                self._parent_cache[current_id] = node
            chain.insert(0, node)
            current_id = node["parent_id"]
            depth += 1

        ancestry = Ancestry()
        path_parts: List[str] = []
        for node in chain:
            if node["id"] == self.root_folder_id:
                continue
            if node["parent_id"] == self.root_folder_id:
                ancestry.artist = node["name"]
            elif ancestry.artist and not ancestry.quality_tier:
                ancestry.quality_tier = quality_tier_for(node["name"])
            path_parts.append(node["name"])
        ancestry.file_path = "/".join(path_parts)
        return ancestry

    async def delta_scan(self, page_token: str) -> List[Dict[str, Any]]:
        """Collect new image files from the change feed since ``page_token``."""
        collected: List[Dict[str, Any]] = []
        checked = 0
        token: Optional[str] = page_token

        while token:
            current = token
            page = await self._call(
                lambda: self.driver.list_changes(current, CHANGE_FIELDS, 1000),
                "list changes",
            )
            for change in page.get("changes", []):
                checked += 1
                if change.get("removed") or not change.get("file"):
                    continue
                file = FileInfo(change["file"])
                if file.get("trashed"):
                    continue
                if should_skip(file.name) or not is_image_file(file.name, file.mime_type):
                    continue

                self._parent_cache.setdefault(
                    file.id,
                    {
                        "id": file.id,
                        "name": file.name,
                        "parent_id": file.parents[0] if file.parents else None,
                    },
                )
                ancestry = await self.resolve_ancestry(file.id)
                if not ancestry.artist:
                    continue
                collected.append(
                    self._file_record(file, ancestry.artist, ancestry.quality_tier, ancestry.file_path)
                )

            token = page.get("nextPageToken")
            if not token and page.get("newStartPageToken"):
                self.token_store.save(page["newStartPageToken"])

        logger.info(f"Delta scan: {checked} changes checked, {len(collected)} new images")
        return collected

    # ------------------------------------------------------------------
    # Dedup + insert
    # ------------------------------------------------------------------

    def _existing_ids(self, drive_ids: List[str]) -> set:
        with session_scope(self.session_factory) as db:
            return asset_service.find_existing_drive_ids(db, drive_ids)

    def _insert_batch(self, records: List[Dict[str, Any]]) -> Tuple[int, int]:
        """Insert one batch; on failure retry row by row and record errors."""
        try:
            with session_scope(self.session_factory) as db:
                return asset_service.insert_asset_records(db, records), 0
        except Exception as e:
            logger.warning(f"Batch insert of {len(records)} rows failed ({e}), retrying per row")

        inserted = errors = 0
        for record in records:
            try:
                with session_scope(self.session_factory) as db:
                    inserted += asset_service.insert_asset_records(db, [record])
            except Exception as e:
                errors += 1
                logger.error(f"Failed to insert {record['drive_file_id']}: {e}")
                try:
                    with session_scope(self.session_factory) as db:
                        asset_service.record_scan_error(
                            db,
                            {"id": record["drive_file_id"], "name": record["filename"],
                             "path": record["file_path"], "artist": record["artist"],
                             "quality_tier": record["quality_tier"], "title": record["title"]},
                            str(e),
                        )
                except Exception as record_error:
                    logger.error(f"Could not record error row for {record['drive_file_id']}: {record_error}")
        return inserted, errors

    async def ingest(self, files: List[Dict[str, Any]]) -> ScanResult:
        """Skip known files and batch-insert the rest."""
        result = ScanResult(files_found=len(files))
        if not files:
            return result

        existing = await asyncio.to_thread(self._existing_ids, [f["id"] for f in files])
        seen = set(existing)
        fresh = []
        for f in files:
            if f["id"] in seen:
                result.skipped += 1
                continue
            seen.add(f["id"])
            fresh.append(f)
        logger.info(f"Dedup: {len(fresh)} new, {result.skipped} already stored")

        records = [asset_service.build_asset_record(f) for f in fresh]
        batches = [
            records[i : i + self.insert_batch_size]
            for i in range(0, len(records), self.insert_batch_size)
        ]

        async def write(batch: List[Dict[str, Any]]) -> Tuple[int, int]:
            return await asyncio.to_thread(self._insert_batch, batch)

        pool = BoundedPool(self.insert_concurrency)
        for inserted, errors in await pool.map(write, batches):
            result.inserted += inserted
            result.errors += errors
        # Rows lost to a concurrent insert count as skipped
        result.skipped += len(records) - result.inserted - result.errors
        return result

    def _count_assets(self) -> int:
        with session_scope(self.session_factory) as db:
            return asset_service.count_assets(db)

    async def run_once(self) -> Dict[str, Any]:
        """Run one scan: delta when a token exists, otherwise full.

        Returns:
            ``{"status": "already_running"}`` when a scan is in progress,
            otherwise the ScanResult dict with ``status="ok"``
        """
        if self.is_running:
            logger.info("Drive scan already running, skipping trigger")
            return {"status": "already_running"}

        self.is_running = True
        started = time.monotonic()
        try:
            token = self.token_store.load()
            artist_failures = 0
            if token:
                mode = "delta"
                try:
                    files = await self.delta_scan(token)
                except StorageError as e:
                    if e.status_code not in (400, 404):
                        raise
                    logger.warning(f"Saved page token rejected ({e}), falling back to full scan")
                    self.token_store.clear()
                    mode = "full"
                    files, artist_failures = await self.full_scan()
            else:
                mode = "full"
                files, artist_failures = await self.full_scan()

            result = await self.ingest(files)
            result.mode = mode
            result.errors += artist_failures
            result.total_in_db = await asyncio.to_thread(self._count_assets)
            result.elapsed = round(time.monotonic() - started, 2)
            logger.info(
                f"Drive scan ({mode}) done: {result.inserted} inserted, "
                f"{result.skipped} skipped, {result.errors} errors in {result.elapsed}s"
            )
            return {"status": "ok", **result.to_dict()}
        finally:
            self.is_running = False


def _metadata_dimensions(file: FileInfo) -> Tuple[int, int]:
    """Pixel size from Drive image metadata, honoring 90/270 degree rotation."""
    meta = file.get("imageMediaMetadata") or {}
    width = int(meta.get("width") or 0)
    height = int(meta.get("height") or 0)
    if meta.get("rotation") in (1, 3):
        width, height = height, width
    return width, height
