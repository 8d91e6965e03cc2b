from __future__ import annotations

import hashlib
import hmac
import os
import re
import time
from abc import ABC, abstractmethod
from pathlib import Path
from urllib.parse import quote, urlencode

from tradedocs.models import DocumentKind


_KEY_PATTERN = re.compile(r"^(quotes|invoices|pos|variations)/[A-Za-z0-9_-]+\.pdf$")
_DEFAULT_SIGNING_SECRET = "dev-signing-secret-change-me"


class BlobStorage(ABC):
    """
    Where exported PDFs live. Keys always look like `<kind prefix>/<id>.pdf`
    (see `build_export_key`); writing an existing key replaces it.
    """

    @abstractmethod
    def put_bytes(self, key: str, data: bytes, mime: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_bytes(self, key: str) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def exists(self, key: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def signed_url(self, key: str, expires_in: int) -> str:
        """Time-limited download link for `key`, valid for `expires_in` seconds."""
        raise NotImplementedError


def _safe_segment(value: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_-]+", "_", (value or "").strip())
    return cleaned or "document"


def _validate_key(key: str) -> None:
    if key.startswith("/") or key.startswith("../") or "/../" in key:
        raise ValueError("Invalid storage key.")
    if not _KEY_PATTERN.match(key):
        raise ValueError("Invalid storage key structure.")


def build_export_key(kind: DocumentKind | str, document_id: object) -> str:
    kind = DocumentKind.parse(kind)
    key = f"{kind.path_prefix}/{_safe_segment(str(document_id))}.pdf"
    _validate_key(key)
    return key


def _sign(secret: str, key: str, expires: int) -> str:
    payload = f"{key}:{expires}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


class LocalStorage(BlobStorage):
    def __init__(self, root: str, *, base_url: str = "", secret: str = _DEFAULT_SIGNING_SECRET) -> None:
        self._root = root
        self._base_url = base_url.rstrip("/")
        self._secret = secret

    def _full_path(self, key: str) -> Path:
        _validate_key(key)
        root = Path(self._root).resolve()
        path = (root / key).resolve()
        if not str(path).startswith(str(root)):
            raise ValueError("Invalid storage key.")
        return path

    def put_bytes(self, key: str, data: bytes, mime: str) -> None:
        path = self._full_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Atomic replace; readers never see a partial file.
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)

    def get_bytes(self, key: str) -> bytes:
        path = self._full_path(key)
        return path.read_bytes()

    def delete(self, key: str) -> None:
        path = self._full_path(key)
        if path.exists():
            path.unlink()

    def exists(self, key: str) -> bool:
        path = self._full_path(key)
        return path.exists()

    def signed_url(self, key: str, expires_in: int, *, now: float | None = None) -> str:
        _validate_key(key)
        expires = int((now if now is not None else time.time()) + expires_in)
        query = urlencode({"expires": expires, "sig": _sign(self._secret, key, expires)})
        return f"{self._base_url}/files/{quote(key)}?{query}"

    def verify_signature(self, key: str, expires: int, signature: str, *, now: float | None = None) -> bool:
        try:
            _validate_key(key)
        except ValueError:
            return False
        if int(expires) < int(now if now is not None else time.time()):
            return False
        return hmac.compare_digest(_sign(self._secret, key, int(expires)), signature or "")


class S3Storage(BlobStorage):
    def __init__(
        self,
        *,
        bucket: str,
        region: str,
        access_key_id: str,
        secret_access_key: str,
        endpoint_url: str | None = None,
    ) -> None:
        import boto3

        self._bucket = bucket
        self._client = boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            endpoint_url=endpoint_url,
        )

    @classmethod
    def from_env(cls) -> "S3Storage":
        bucket = os.getenv("S3_BUCKET", "").strip()
        region = os.getenv("S3_REGION", "").strip()
        access_key_id = os.getenv("AWS_ACCESS_KEY_ID", "").strip()
        secret_access_key = os.getenv("AWS_SECRET_ACCESS_KEY", "").strip()
        endpoint_url = os.getenv("S3_ENDPOINT_URL") or None
        if not bucket or not region or not access_key_id or not secret_access_key:
            raise ValueError("Incomplete S3 configuration.")
        return cls(
            bucket=bucket,
            region=region,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            endpoint_url=endpoint_url,
        )

    def put_bytes(self, key: str, data: bytes, mime: str) -> None:
        _validate_key(key)
        self._client.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=data,
            ContentType=mime or "application/octet-stream",
        )

    def get_bytes(self, key: str) -> bytes:
        _validate_key(key)
        obj = self._client.get_object(Bucket=self._bucket, Key=key)
        body = obj.get("Body")
        return body.read() if body is not None else b""

    def delete(self, key: str) -> None:
        _validate_key(key)
        self._client.delete_object(Bucket=self._bucket, Key=key)

    def exists(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        _validate_key(key)
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise
        return True

    def signed_url(self, key: str, expires_in: int) -> str:
        _validate_key(key)
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self._bucket, "Key": key},
            ExpiresIn=expires_in,
        )


_STORAGE_INSTANCE: BlobStorage | None = None


def blob_storage() -> BlobStorage:
    global _STORAGE_INSTANCE
    if _STORAGE_INSTANCE is not None:
        return _STORAGE_INSTANCE
    backend = (os.getenv("TRADEDOCS_STORAGE_BACKEND", "local") or "local").strip().lower()
    if backend == "s3":
        _STORAGE_INSTANCE = S3Storage.from_env()
    else:
        root = (os.getenv("TRADEDOCS_STORAGE_ROOT", "storage") or "storage").strip()
        _STORAGE_INSTANCE = LocalStorage(
            root=root,
            base_url=os.getenv("TRADEDOCS_PUBLIC_BASE_URL", ""),
            secret=os.getenv("TRADEDOCS_SIGNING_SECRET") or _DEFAULT_SIGNING_SECRET,
        )
    return _STORAGE_INSTANCE
