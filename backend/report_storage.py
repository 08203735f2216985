"""Where generated PDFs are kept until the user downloads them.

With a bucket configured the file goes to S3 and the caller gets a
presigned ``get_object`` URL; otherwise it is written under a local
directory and served by the download endpoint.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Optional

DOWNLOAD_ROUTE = "/api/reports/download"
PRESIGNED_URL_TTL = 300

_KEY_PART = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")


@dataclass(frozen=True)
class StoredReport:
    key: str
    filename: str
    download_url: str


def build_key(session_id: str, filename: str) -> str:
    return f"{session_id}/{filename}"


def is_valid_key(key: Optional[str]) -> bool:
    parts = (key or "").split("/")
    if len(parts) != 2:
        return False
    return all(_KEY_PART.match(part) and ".." not in part for part in parts)


class ReportStorage:
    def __init__(self, logger, *, s3_client=None, bucket: Optional[str] = None, storage_dir: str = "") -> None:
        self._logger = logger
        self._s3 = s3_client
        self._bucket = bucket
        self._storage_dir = storage_dir or os.path.join(os.getcwd(), "generated_reports")

    @property
    def uses_s3(self) -> bool:
        return bool(self._s3 is not None and self._bucket)

    def save(self, session_id: str, filename: str, content: bytes) -> StoredReport:
        key = build_key(session_id, filename)
        if not is_valid_key(key):
            raise ValueError(f"Unsafe storage key: {key}")

        if self.uses_s3:
            self._s3.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=content,
                ContentType="application/pdf",
            )
            self._logger.info("Stored %s in s3://%s (%d bytes)", key, self._bucket, len(content))
            url = self.presigned_url(key, filename) or f"{DOWNLOAD_ROUTE}/{key}"
            return StoredReport(key=key, filename=filename, download_url=url)

        path = self._local_path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)
        self._logger.info("Stored %s at %s (%d bytes)", key, path, len(content))
        return StoredReport(key=key, filename=filename, download_url=f"{DOWNLOAD_ROUTE}/{key}")

    def load(self, key: str) -> Optional[bytes]:
        """Return the stored bytes for *key*, or ``None`` if there are none."""
        if not is_valid_key(key):
            return None

        if self.uses_s3:
            try:
                response = self._s3.get_object(Bucket=self._bucket, Key=key)
            except self._s3.exceptions.NoSuchKey:
                self._logger.error("Report not found in S3: %s", key)
                return None
            return response["Body"].read()

        path = self._local_path(key)
        if not os.path.exists(path):
            self._logger.error("Report not found on disk: %s", path)
            return None
        with open(path, "rb") as f:
            return f.read()

    def presigned_url(self, key: str, filename: str) -> Optional[str]:
        if not self.uses_s3:
            return None
        try:
            return self._s3.generate_presigned_url(
                "get_object",
                Params={
                    "Bucket": self._bucket,
                    "Key": key,
                    "ResponseContentType": "application/pdf",
                    "ResponseContentDisposition": f'attachment; filename="{filename}"',
                },
                ExpiresIn=PRESIGNED_URL_TTL,
            )
        except Exception as exc:
            self._logger.error("Failed to generate presigned URL: %s", exc)
            return None

    def _local_path(self, key: str) -> str:
        session_id, filename = key.split("/", 1)
        return os.path.join(self._storage_dir, session_id, filename)


__all__ = ["DOWNLOAD_ROUTE", "ReportStorage", "StoredReport", "build_key", "is_valid_key"]
