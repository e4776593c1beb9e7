"""Firebase (Google Cloud Storage) backed object storage.

Files are written to a single bucket and handed back as Firebase download
URLs, which resolve without a signed request.
"""
from functools import lru_cache
from urllib.parse import quote

import structlog
from google.api_core.exceptions import NotFound
from google.cloud import storage

from ..application.ports import IObjectStorage
from ..config import settings
from .metrics import uploads_total

logger = structlog.get_logger()

DOWNLOAD_URL = "https://firebasestorage.googleapis.com/v0/b/{bucket}/o/{path}?alt=media"


def build_download_url(bucket: str, path: str) -> str:
    # Firebase expects the whole object path, slashes included, as one segment
    return DOWNLOAD_URL.format(bucket=bucket, path=quote(path, safe=""))


class FirebaseStorage(IObjectStorage):
    def __init__(self, bucket_name: str, credentials_file: str | None = None, client: storage.Client | None = None):
        self.bucket_name = bucket_name
        self.credentials_file = credentials_file
        self._client = client

    @property
    def client(self) -> storage.Client:
        if self._client is None:
            if self.credentials_file:
                self._client = storage.Client.from_service_account_json(self.credentials_file)
            else:
                self._client = storage.Client()
        return self._client

    def upload(self, data: bytes, path: str, content_type: str) -> str:
        blob = self.client.bucket(self.bucket_name).blob(path)
        blob.upload_from_string(data, content_type=content_type)
        uploads_total.labels(folder=path.split("/", 1)[0]).inc()
        logger.info("object_uploaded", bucket=self.bucket_name, path=path, size=len(data))
        return build_download_url(self.bucket_name, path)

    def delete(self, path: str) -> None:
        try:
            self.client.bucket(self.bucket_name).blob(path).delete()
        except NotFound:
            logger.warning("object_missing_on_delete", bucket=self.bucket_name, path=path)
            return
        logger.info("object_deleted", bucket=self.bucket_name, path=path)


@lru_cache
def get_storage() -> IObjectStorage:
    return FirebaseStorage(settings.STORAGE_BUCKET, settings.STORAGE_CREDENTIALS_FILE)
