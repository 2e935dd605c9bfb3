"""
MinIO Object Store Adapter
Reads captured images and their violation metadata from an S3-compatible bucket
"""

from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from loguru import logger
from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError

from shared.collaborators.base import ObjectStore, metadata_from_user_fields
from shared.errors import CollaboratorError
from shared.schemas.violation import CapturedImage

USER_METADATA_PREFIX = 'x-amz-meta-'


def user_metadata(headers) -> Dict[str, str]:
    """
    Extract user metadata from object headers

    Args:
        headers: Header mapping from stat_object (keys are case-insensitive)

    Returns:
        Dict with the x-amz-meta- prefix stripped and keys lowercased
    """
    fields = {}
    for name, value in (headers or {}).items():
        lowered = name.lower()
        if lowered.startswith(USER_METADATA_PREFIX):
            fields[lowered[len(USER_METADATA_PREFIX):]] = value
    return fields


class MinioObjectStore(ObjectStore):
    """
    Image store on MinIO (or any S3-compatible endpoint)

    Attributes:
        client: minio.Minio client
    """

    def __init__(
        self,
        endpoint: str = 'localhost:9000',
        access_key: str = '',
        secret_key: str = '',
        secure: bool = False,
        client: Optional[Minio] = None,
    ):
        """
        Args:
            endpoint: MinIO endpoint (host:port)
            access_key: MinIO access key
            secret_key: MinIO secret key
            secure: Use HTTPS (True) or HTTP (False)
            client: Pre-built client, overrides the connection arguments
        """
        self.endpoint = endpoint
        self.client = client or Minio(
            endpoint=endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
        )

    def get_image(self, bucket: str, key: str) -> CapturedImage:
        try:
            stat = self.client.stat_object(bucket, key)
            response = self.client.get_object(bucket, key)
            try:
                data = response.read()
            finally:
                response.close()
                response.release_conn()
        except (S3Error, HTTPError) as e:
            raise CollaboratorError('object-store', f"Cannot fetch {bucket}/{key}: {e}", e) from e

        return CapturedImage(
            bucket=bucket,
            key=key,
            metadata=metadata_from_user_fields(user_metadata(stat.metadata), key),
            data=data,
        )

    def put_capture(self, bucket: str, key: str, file_path: str, metadata: Dict[str, str]):
        """Upload a JPEG capture with its violation metadata"""
        try:
            result = self.client.fput_object(
                bucket,
                key,
                file_path,
                content_type='image/jpeg',
                metadata=metadata,
            )
        except (S3Error, HTTPError) as e:
            raise CollaboratorError('object-store', f"Cannot upload {bucket}/{key}: {e}", e) from e

        logger.info(f"☁️  Uploaded {bucket}/{key} (etag={result.etag})")
        return result

    @contextmanager
    def listen_for_uploads(self, bucket: str, suffix: str = '.jpg') -> Iterator:
        """
        Stream bucket notifications for newly created objects

        Yields an iterator of S3-style notification dicts ({"Records": [...]}).
        """
        with self.client.listen_bucket_notification(
            bucket,
            suffix=suffix,
            events=['s3:ObjectCreated:*'],
        ) as events:
            yield events
