"""Cursor storage backed by S3/MinIO with optional local fallback.

Provides JSON read/write of the ingestion cursor document.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import boto3
from botocore.exceptions import ClientError


@dataclass
class CursorDocument:
    """Persisted ingestion cursor."""

    last_fetch_time: int
    last_updated: str = ""
    total_records: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CursorDocument:
        return cls(
            last_fetch_time=int(raw.get("last_fetch_time", 0)),
            last_updated=raw.get("last_updated", ""),
            total_records=int(raw.get("total_records", 0)),
            metadata=raw.get("metadata", {}) or {},
        )


class CursorStore:
    """S3/MinIO-backed cursor store; a ``local_root`` switches to plain files."""

    def __init__(
        self,
        bucket: str | None = None,
        endpoint: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        local_root: str | None = None,
        region: str = "us-east-1",
    ) -> None:
        self.local_root = Path(local_root) if local_root else None
        self.bucket = bucket or os.getenv("CURSOR_BUCKET", "history-replicator")
        self.endpoint = endpoint or os.getenv("CURSOR_ENDPOINT")
        self.s3 = None

        if self.local_root is None:
            self.s3 = boto3.client(
                "s3",
                endpoint_url=self.endpoint,
                aws_access_key_id=access_key or os.getenv("AWS_ACCESS_KEY_ID"),
                aws_secret_access_key=secret_key or os.getenv("AWS_SECRET_ACCESS_KEY"),
                region_name=region,
            )

    def read(self, key: str) -> CursorDocument | None:
        if self.local_root:
            path = self.local_root / key
            if not path.exists():
                return None
            return CursorDocument.from_dict(json.loads(path.read_text()))

        try:
            resp = self.s3.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in {"404", "NoSuchKey", "NotFound"}:
                return None
            raise
        body = resp["Body"].read().decode("utf-8")
        return CursorDocument.from_dict(json.loads(body))

    def write_atomic(self, key: str, document: CursorDocument) -> None:
        """Replace the document. Local writes go through a temp file + rename."""
        payload = json.dumps(document.to_dict(), ensure_ascii=True).encode("utf-8")

        if self.local_root:
            path = self.local_root / key
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_bytes(payload)
            os.replace(tmp, path)
            return

        self.s3.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=payload,
            ContentType="application/json",
        )
