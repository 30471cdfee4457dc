"""
Storage for files attached to submissions.

save() returns a stored filename token; that token, never the file content,
is what a submission records for a file field.
"""

import logging
import os
import re
import shutil
import time
from typing import BinaryIO, Optional

import boto3
from botocore.config import Config as BotoConfig

from utils.config import Settings

logger = logging.getLogger("backend.uploads")


def make_token(original_name: Optional[str]) -> str:
    """Token of the form <epoch-ms>-<name>, with the name reduced to a safe character set."""
    base = os.path.basename(original_name or "") or "file"
    safe_name = re.sub(r"[^a-zA-Z0-9._-]", "_", base).lstrip(".") or "file"
    return f"{int(time.time() * 1000)}-{safe_name}"


class FileStorage:
    def save(self, stream: BinaryIO, original_name: Optional[str], content_type: Optional[str] = None) -> str:
        raise NotImplementedError

    def delete(self, token: str) -> None:
        raise NotImplementedError


class LocalFileStorage(FileStorage):
    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def path_for(self, token: str) -> str:
        path = os.path.abspath(os.path.join(self.root, token))
        if os.path.dirname(path) != self.root:
            raise ValueError(f"Invalid file token: {token}")
        return path

    def save(self, stream: BinaryIO, original_name: Optional[str], content_type: Optional[str] = None) -> str:
        os.makedirs(self.root, exist_ok=True)
        token = make_token(original_name)
        path = self.path_for(token)
        # Same-millisecond uploads of the same name get a numeric suffix
        suffix = 1
        while os.path.exists(path):
            token = make_token(f"{suffix}-{original_name or 'file'}")
            path = self.path_for(token)
            suffix += 1
        with open(path, "wb") as out:
            shutil.copyfileobj(stream, out)
        logger.info("stored upload %s", token)
        return token

    def delete(self, token: str) -> None:
        try:
            os.remove(self.path_for(token))
        except FileNotFoundError:
            pass


class R2FileStorage(FileStorage):
    """Cloudflare R2 (S3 API) bucket; objects live under submissions/<token>."""

    def __init__(self, account_id: str, access_key_id: str, secret_access_key: str, bucket: str):
        if not (account_id and access_key_id and secret_access_key):
            raise ValueError("R2 is not configured (R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY)")
        self.bucket = bucket
        self.client = boto3.client(
            "s3",
            endpoint_url=f"https://{account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=BotoConfig(signature_version="s3v4"),
            region_name="auto",
        )

    @staticmethod
    def key_for(token: str) -> str:
        return f"submissions/{token}"

    def save(self, stream: BinaryIO, original_name: Optional[str], content_type: Optional[str] = None) -> str:
        token = make_token(original_name)
        self.client.put_object(
            Bucket=self.bucket,
            Key=self.key_for(token),
            Body=stream.read(),
            ContentType=content_type or "application/octet-stream",
        )
        logger.info("stored upload %s in bucket %s", token, self.bucket)
        return token

    def delete(self, token: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=self.key_for(token))


def build_file_storage(settings: Settings) -> FileStorage:
    if settings.storage_backend == "local":
        return LocalFileStorage(settings.upload_dir)
    if settings.storage_backend == "r2":
        return R2FileStorage(
            settings.r2_account_id,
            settings.r2_access_key_id,
            settings.r2_secret_access_key,
            settings.r2_bucket,
        )
    raise ValueError(f"Unknown STORAGE_BACKEND: {settings.storage_backend}")
