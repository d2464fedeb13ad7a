"""S3-compatible implementation of the ObjectStore contract."""

import asyncio
import logging
from typing import Any
from typing import Sequence
from urllib.parse import quote
from urllib.parse import unquote

import boto3  # type: ignore[import-untyped]
import httpx
from botocore.config import Config as BotoConfig  # type: ignore[import-untyped]
from botocore.exceptions import BotoCoreError  # type: ignore[import-untyped]
from botocore.exceptions import ClientError  # type: ignore[import-untyped]

from upload_relay.config import Config
from upload_relay.errors import StorageError
from upload_relay.services.object_store import MultipartSession
from upload_relay.services.object_store import ObjectStore
from upload_relay.services.object_store import StoredObject
from upload_relay.services.object_store import UploadedPart
from upload_relay.services.object_store import UploadTarget
from upload_relay.services.object_store import with_random_suffix


logger = logging.getLogger(__name__)

# DeleteObjects accepts at most 1000 keys per call
DELETE_BATCH_SIZE = 1000


def create_s3_client(config: Config) -> Any:
    return boto3.client(
        "s3",
        endpoint_url=config.s3_endpoint_url or None,
        region_name=config.s3_region,
        aws_access_key_id=config.s3_access_key or None,
        aws_secret_access_key=config.s3_secret_key or None,
        config=BotoConfig(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
        ),
    )


class S3ObjectStore(ObjectStore):
    """
    Object store backed by an S3 bucket.

    The boto3 client is synchronous, so every provider call is pushed to a
    worker thread. Object URLs are ``{public_base_url}/{key}``; plain reads go
    through httpx and only ever target URLs under that base.
    """

    def __init__(
        self,
        s3_client: Any,
        bucket: str,
        public_base_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        fetch_timeout: float = 60.0,
        presign_expiry_seconds: int = 3600,
    ) -> None:
        self.s3 = s3_client
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.presign_expiry_seconds = presign_expiry_seconds
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(fetch_timeout, connect=10.0),
            follow_redirects=False,
        )

    @classmethod
    def from_config(cls, config: Config) -> "S3ObjectStore":
        return cls(
            create_s3_client(config),
            config.s3_bucket,
            config.storage_public_base_url,
            fetch_timeout=config.storage_fetch_timeout_seconds,
            presign_expiry_seconds=config.presign_expiry_seconds,
        )

    async def close(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{quote(key)}"

    def manages(self, url: str) -> bool:
        return url.startswith(f"{self.public_base_url}/")

    def key_from_url(self, url: str) -> str:
        prefix = f"{self.public_base_url}/"
        if not self.manages(url):
            raise StorageError(f"URL is not managed by this store: {url}")
        return unquote(url[len(prefix) :].split("?", 1)[0])

    async def _call(self, operation: str, **params: Any) -> Any:
        try:
            return await asyncio.to_thread(getattr(self.s3, operation), **params)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Storage {operation} failed: {e}") from e

    async def store(
        self,
        key: str,
        data: bytes,
        *,
        public: bool = True,
        random_suffix: bool = True,
        content_type: str | None = None,
    ) -> StoredObject:
        final_key = with_random_suffix(key) if random_suffix else key
        params: dict[str, Any] = {"Bucket": self.bucket, "Key": final_key, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        if public:
            params["ACL"] = "public-read"

        await self._call("put_object", **params)
        logger.debug(f"Stored {final_key} ({len(data)} bytes)")
        return StoredObject(url=self.public_url(final_key), key=final_key, size_bytes=len(data))

    async def retrieve(self, url: str) -> bytes:
        # Only objects inside this bucket are ever fetched
        self.key_from_url(url)
        try:
            response = await self._http.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to fetch {url}: {e}") from e
        return response.content

    async def delete(self, urls: str | Sequence[str]) -> None:
        url_list = [urls] if isinstance(urls, str) else list(urls)
        keys = [self.key_from_url(u) for u in url_list]

        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start : start + DELETE_BATCH_SIZE]
            result = await self._call(
                "delete_objects",
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
            )
            errors = (result or {}).get("Errors") or []
            if errors:
                failed = ", ".join(f"{err.get('Key')} ({err.get('Code')})" for err in errors)
                raise StorageError(f"Storage delete failed for: {failed}")

    async def create_multipart_upload(self, key: str) -> MultipartSession:
        response = await self._call("create_multipart_upload", Bucket=self.bucket, Key=key, ACL="public-read")
        return MultipartSession(upload_id=response["UploadId"], key=response.get("Key", key))

    async def upload_part(self, key: str, data: bytes, *, upload_id: str, part_number: int) -> UploadedPart:
        response = await self._call(
            "upload_part",
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=data,
        )
        return UploadedPart(etag=response["ETag"], part_number=part_number)

    async def complete_multipart_upload(
        self, key: str, parts: Sequence[UploadedPart], *, upload_id: str
    ) -> StoredObject:
        # ETags are passed back exactly as the provider returned them, in caller order
        await self._call(
            "complete_multipart_upload",
            Bucket=self.bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": [{"ETag": p.etag, "PartNumber": p.part_number} for p in parts]},
        )
        return StoredObject(url=self.public_url(key), key=key)

    async def create_upload_target(self, key: str, content_type: str) -> UploadTarget:
        final_key = with_random_suffix(key)
        upload_url = await self._call(
            "generate_presigned_url",
            ClientMethod="put_object",
            Params={"Bucket": self.bucket, "Key": final_key, "ContentType": content_type},
            ExpiresIn=self.presign_expiry_seconds,
        )
        return UploadTarget(
            upload_url=upload_url,
            url=self.public_url(final_key),
            key=final_key,
            expires_in=self.presign_expiry_seconds,
            headers={"Content-Type": content_type},
        )
