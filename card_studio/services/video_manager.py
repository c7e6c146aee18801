"""Video registry and temp-file housekeeping."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from card_studio.config import get_settings
from card_studio.schemas.video import VideoRecord
from card_studio.services.cache_store import CacheStore

logger = logging.getLogger(__name__)

TEMP_MEDIA_SUFFIXES = {".mp4", ".webm", ".png", ".jpg", ".jpeg"}


def contained_path(path_value: str, roots: Sequence[Path]) -> Optional[Path]:
    """Resolved ``path_value`` if it lies under one of ``roots``, else None."""
    resolved = Path(path_value).resolve()
    for root in roots:
        if resolved.is_relative_to(Path(root).resolve()):
            return resolved
    return None


def _parse_iso(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class VideoManager:
    def __init__(self, store: CacheStore, temp_dir: Optional[Path] = None, output_dir: Optional[Path] = None):
        settings = get_settings()
        self.store = store
        self.temp_dir = Path(temp_dir or settings.TEMP_DIR)
        self.output_dir = Path(output_dir or settings.OUTPUT_DIR)

    @property
    def media_roots(self) -> tuple:
        return (self.output_dir, self.temp_dir)

    def local_path(self, path_value: str) -> Optional[Path]:
        """Resolved path inside OUTPUT_DIR or TEMP_DIR, or None."""
        return contained_path(path_value, self.media_roots)

    async def register_video(
        self,
        product_id: str,
        duration: float = 5.0,
        blob_url: Optional[str] = None,
        video_path: Optional[str] = None,
    ) -> VideoRecord:
        record = VideoRecord(
            id=f"video_{int(time.time() * 1000)}_{product_id}",
            productId=str(product_id),
            duration=duration,
            blobUrl=blob_url,
            videoPath=video_path,
        )
        await self.store.save_video(record)
        logger.info("Video registered: id=%s product=%s", record.id, product_id)
        return record

    async def publish_video(self, video_id: str) -> Optional[VideoRecord]:
        """Mark a video published. Returns None if the id is unknown."""
        record = await self.store.get_video(video_id)
        if record is None:
            return None
        record.status = "published"
        record.published_at = datetime.now(timezone.utc).isoformat()
        await self.store.save_video(record)
        logger.info("Video published: id=%s", video_id)
        return record

    def _remove_file(self, path_value: Optional[str]) -> bool:
        if not path_value:
            return False
        path = self.local_path(path_value)
        if path is None:
            logger.warning("Not removing %s: outside the media directories", path_value)
            return False
        if path.is_file():
            path.unlink()
            logger.info("Removed video file %s", path)
            return True
        return False

    async def delete_video(self, video_id: str) -> bool:
        record = await self.store.get_video(video_id)
        if record is not None:
            self._remove_file(record.video_path)
        return await self.store.delete_video(video_id)

    async def cleanup_old_videos(self) -> List[str]:
        """Keep only the most recent video; remove the rest with their files."""
        videos = await self.store.list_videos()
        if len(videos) <= 1:
            return []
        removed = []
        for record in videos[1:]:
            self._remove_file(record.video_path)
            await self.store.delete_video(record.id)
            removed.append(record.id)
        logger.info("Kept video %s, removed %d older videos", videos[0].id, len(removed))
        return removed

    async def cleanup_temp_files(self, older_than_hours: float = 24, dry_run: bool = False) -> Dict[str, Any]:
        """Remove stale media files in ``TEMP_DIR`` and expired registry entries.

        With ``dry_run`` nothing is deleted; the result lists what would be.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(hours=older_than_hours)
        cutoff_ts = cutoff.timestamp()

        files: List[str] = []
        if self.temp_dir.is_dir():
            for path in sorted(self.temp_dir.iterdir()):
                if not path.is_file() or path.suffix.lower() not in TEMP_MEDIA_SUFFIXES:
                    continue
                if path.stat().st_mtime >= cutoff_ts:
                    continue
                files.append(str(path))
                if not dry_run:
                    path.unlink()

        stale_videos: List[str] = []
        for record in await self.store.list_videos():
            created = _parse_iso(record.created_at)
            if created is not None and created < cutoff:
                stale_videos.append(record.id)
                if not dry_run:
                    await self.delete_video(record.id)

        logger.info(
            "Temp cleanup (dry_run=%s, older_than=%sh): %d files, %d videos",
            dry_run, older_than_hours, len(files), len(stale_videos),
        )
        return {
            "dryRun": dry_run,
            "olderThanHours": older_than_hours,
            "files": files,
            "filesRemoved": 0 if dry_run else len(files),
            "videos": stale_videos,
            "videosRemoved": 0 if dry_run else len(stale_videos),
        }
