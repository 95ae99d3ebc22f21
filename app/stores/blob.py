import asyncio
import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.utils.exceptions import BlobStoreError

logger = logging.getLogger(__name__)

# SigV4 presigned URLs cannot outlive a week
MAX_PRESIGN_SECONDS = 7 * 24 * 3600


class S3BlobStore:
    """Blob store backed by an S3 bucket. boto3 is blocking, so calls run in a worker thread."""

    def __init__(self, bucket: Optional[str] = None, public_base_url: Optional[str] = None,
                 region_name: Optional[str] = None, client=None):
        self.bucket = bucket or settings.aws_bucket_name
        self.public_base_url = public_base_url if public_base_url is not None else settings.uploads_public_base_url
        self._client = client
        self._region_name = region_name or settings.aws_region

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client('s3', region_name=self._region_name)
        return self._client

    def _url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        return self.client.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.bucket, 'Key': key},
            ExpiresIn=MAX_PRESIGN_SECONDS,
        )

    def _put_sync(self, key: str, data: bytes, content_type: str) -> str:
        self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        return self._url_for(key)

    async def put(self, path_hint: str, data: bytes, content_type: str) -> str:
        try:
            url = await asyncio.to_thread(self._put_sync, path_hint, data, content_type)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error uploading {path_hint} to S3 bucket {self.bucket}: {e}")
            raise BlobStoreError(f"Upload failed for {path_hint}") from e
        logger.info(f"Uploaded {len(data)} bytes to s3://{self.bucket}/{path_hint}")
        return url
