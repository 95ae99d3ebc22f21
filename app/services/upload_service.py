import logging
import re
from typing import Optional, Union

from app.config import settings
from app.schemas.common import ActionResult
from app.schemas.posts import UploadResponse
from app.stores.contracts import BlobStore
from app.utils.time_utils import epoch_millis

logger = logging.getLogger(__name__)

ALLOWED_MEDIA_TYPES = re.compile(r"^(image/(png|jpeg|jpg|gif|webp)|video/(mp4|webm|ogg))$", re.IGNORECASE)
UPLOAD_SCOPES = {"posts", "stories"}


def safe_filename(filename: Optional[str]) -> str:
    name = (filename or "file").rsplit("/", 1)[-1].rsplit("\\", 1)[-1]
    name = re.sub(r"\s+", "_", name.strip())
    return name or "file"


class UploadService:
    def __init__(self, blobs: BlobStore, max_bytes: Optional[int] = None):
        self.blobs = blobs
        self.max_bytes = max_bytes or settings.upload_max_bytes

    async def upload_media(self, user_id: str, scope: str, filename: Optional[str], data: bytes,
                           content_type: Optional[str]) -> Union[ActionResult, UploadResponse]:
        """
        Store an uploaded image or video under `{scope}/{user_id}/{ms}-{name}`.

        Returns:
            UploadResponse with the retrievable URL, or an ActionResult carrying
            no_file, unsupported_media_type or file_too_large
        """
        if scope not in UPLOAD_SCOPES:
            raise ValueError(f"Unknown upload scope: {scope}")
        if not data:
            return ActionResult.failure("no_file")
        if not ALLOWED_MEDIA_TYPES.match(content_type or ""):
            return ActionResult.failure("unsupported_media_type")
        if len(data) > self.max_bytes:
            return ActionResult.failure("file_too_large")

        path = f"{scope}/{user_id}/{epoch_millis()}-{safe_filename(filename)}"
        url = await self.blobs.put(path, data, content_type)
        logger.info(f"User {user_id} uploaded {path}")
        return UploadResponse(url=url)
