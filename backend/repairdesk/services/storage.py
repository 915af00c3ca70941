"""Attachment upload policy and object storage.

Objects live under ``ticket-attachments/{ticket_id}/{random}.{ext}`` in a MinIO
(S3 compatible) bucket and are served from a public URL. The accept policy
(media types and the 10 MiB cap) is checked here, before any network call.
"""
from __future__ import annotations
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Mapping, Optional
import logging
import os
import uuid
from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError as Urllib3HTTPError
from repairdesk.errors import GatewayError, ValidationError
from repairdesk.models.ticket import TicketAttachment

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_CONTENT_TYPES = {
    'image/jpeg', 'image/png', 'image/gif', 'image/webp',
    'video/mp4', 'video/quicktime', 'video/webm',
}
IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp'}
ATTACHMENT_PREFIX = 'ticket-attachments'


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        _, ext = os.path.splitext(self.filename or '')
        return ext.lstrip('.').lower()


def validate_upload(file: UploadedFile) -> UploadedFile:
    content_type = (file.content_type or '').split(';')[0].strip().lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(message_key='errors.file_type', field='files')
    if file.size > MAX_UPLOAD_BYTES:
        raise ValidationError(message_key='errors.file_size', field='files')
    return file


def build_storage_key(ticket_id: str, filename: str) -> str:
    ext = os.path.splitext(filename or '')[1].lstrip('.').lower()
    name = uuid.uuid4().hex
    return f"{ATTACHMENT_PREFIX}/{ticket_id}/{name}.{ext}" if ext else f"{ATTACHMENT_PREFIX}/{ticket_id}/{name}"


def kind_from_extension(filename: str) -> str:
    ext = os.path.splitext(filename or '')[1].lstrip('.').lower()
    return TicketAttachment.TYPE_IMAGE if ext in IMAGE_EXTENSIONS else TicketAttachment.TYPE_VIDEO


def sniff_content_type(data: bytes) -> str:
    import magic  # python-magic needs the libmagic shared library at runtime
    return magic.from_buffer(data[:2048], mime=True)


def check_content_sniffing() -> None:
    """Fail at startup rather than on the first upload when libmagic is missing."""
    try:
        import magic  # noqa: F401
    except ImportError as e:
        raise RuntimeError('ATTACHMENT_SNIFF_CONTENT is enabled but python-magic/libmagic is not available') from e


def detect_file_kind(file: UploadedFile, sniff: bool = False) -> str:
    """Return 'image' or 'video' for an accepted upload.

    With `sniff` the leading bytes decide; a clearly non-media payload is rejected.
    Without it (or when the bytes are inconclusive) the extension decides, defaulting to video.
    """
    if sniff:
        detected = sniff_content_type(file.data)
        if detected.startswith('image/'):
            return TicketAttachment.TYPE_IMAGE
        if detected.startswith('video/'):
            return TicketAttachment.TYPE_VIDEO
        if detected not in ('application/octet-stream', 'application/x-empty'):
            logger.warning('Rejected upload %s: declared %s, detected %s', file.filename, file.content_type, detected)
            raise ValidationError(message_key='errors.file_type', field='files')
    return kind_from_extension(file.filename)


class ObjectStorage:
    def upload(self, key: str, data: bytes, content_type: str) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    def delete(self, key: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class MinioStorage(ObjectStorage):
    def __init__(self, endpoint: str, access_key: str, secret_key: str, bucket: str,
                 secure: bool = True, public_url: Optional[str] = None):
        self.client = Minio(endpoint, access_key=access_key, secret_key=secret_key, secure=secure)
        self.bucket = bucket
        scheme = 'https' if secure else 'http'
        self.public_url = (public_url or f"{scheme}://{endpoint}").rstrip('/')
        self._bucket_ready = False

    def _ensure_bucket(self):
        if self._bucket_ready:
            return
        if not self.client.bucket_exists(self.bucket):
            self.client.make_bucket(self.bucket)
            logger.info('Created storage bucket %s', self.bucket)
        self._bucket_ready = True

    def url_for(self, key: str) -> str:
        return f"{self.public_url}/{self.bucket}/{key}"

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self._ensure_bucket()
            self.client.put_object(self.bucket, key, BytesIO(data), length=len(data), content_type=content_type)
        except (S3Error, Urllib3HTTPError, OSError) as e:
            raise GatewayError(str(e)) from e
        logger.info('Uploaded %s/%s (%d bytes)', self.bucket, key, len(data))
        return self.url_for(key)

    def delete(self, key: str) -> None:
        try:
            self.client.remove_object(self.bucket, key)
        except (S3Error, Urllib3HTTPError, OSError) as e:
            raise GatewayError(str(e)) from e


class UnconfiguredStorage(ObjectStorage):
    """Placeholder when no storage endpoint is configured; every call fails as a gateway error."""

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        raise GatewayError('object storage is not configured')

    def delete(self, key: str) -> None:
        raise GatewayError('object storage is not configured')


def build_object_storage(config: Mapping[str, Any]) -> ObjectStorage:
    endpoint = config.get('STORAGE_ENDPOINT')
    if not endpoint:
        logger.warning('STORAGE_ENDPOINT not set; attachments will not be stored')
        return UnconfiguredStorage()
    return MinioStorage(
        endpoint=endpoint,
        access_key=config.get('STORAGE_ACCESS_KEY') or '',
        secret_key=config.get('STORAGE_SECRET_KEY') or '',
        bucket=config.get('STORAGE_BUCKET') or 'tickets',
        secure=bool(config.get('STORAGE_SECURE', True)),
        public_url=config.get('STORAGE_PUBLIC_URL') or None,
    )

__all__ = [
    'UploadedFile', 'validate_upload', 'build_storage_key', 'detect_file_kind', 'kind_from_extension',
    'ObjectStorage', 'MinioStorage', 'UnconfiguredStorage', 'build_object_storage',
    'MAX_UPLOAD_BYTES', 'ALLOWED_CONTENT_TYPES',
]
