"""Video registry schemas"""

from datetime import datetime, timezone
from pydantic import BaseModel, Field
from typing import Literal, Optional


class VideoRecord(BaseModel):
    """Metadata for one generated video, stored as JSON under ``shopee:video:<id>``"""

    id: str
    product_id: str = Field(..., alias="productId")
    duration: float = 5.0
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        alias="createdAt",
    )
    status: Literal["pending", "published"] = "pending"
    published_at: Optional[str] = Field(None, alias="publishedAt")
    blob_url: Optional[str] = Field(None, alias="blobUrl")
    video_path: Optional[str] = Field(None, alias="videoPath")

    class Config:
        populate_by_name = True


class SaveVideoRequest(BaseModel):
    """Body of POST /save-video"""

    product_id: Optional[str] = Field(None, alias="productId")
    duration: float = Field(5.0, gt=0, le=60)
    blob_url: Optional[str] = Field(None, alias="blobUrl")
    video_path: Optional[str] = Field(None, alias="videoPath")

    class Config:
        populate_by_name = True


class VideoIdRequest(BaseModel):
    """Body of POST /publish-video and POST /videos/delete"""

    video_id: Optional[str] = Field(None, alias="videoId")

    class Config:
        populate_by_name = True


class CleanupVideosRequest(BaseModel):
    """Body of POST /cache/cleanup-videos"""

    older_than: float = Field(24, alias="olderThan", ge=0, description="Age in hours")
    dry_run: bool = Field(False, alias="dryRun")

    class Config:
        populate_by_name = True
