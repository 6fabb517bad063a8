"""
Blueprint image storage: upload by name into a bucket directory under the
upload dir and hand back a public URL served from /uploads.
"""
import logging
import os
import time

from ujian_gto.config import settings
from ujian_gto.errors import ValidationFailed

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp", "bmp", "svg"}


class BlueprintStorage:
    def __init__(self, root: str = None, bucket: str = None, public_base_url: str = None):
        self.root = root or settings.upload_dir
        self.bucket = bucket or settings.blueprint_bucket
        self.public_base_url = settings.public_base_url if public_base_url is None else public_base_url
        self.bucket_dir = os.path.join(self.root, self.bucket)
        os.makedirs(self.bucket_dir, exist_ok=True)

    @staticmethod
    def generate_name(filename: str) -> str:
        """blueprint_<epoch-ms>.<ext>, keeping the uploaded file's extension."""
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "png"
        return f"blueprint_{int(time.time() * 1000)}.{ext}"

    def upload(self, name: str, data: bytes, upsert: bool = False) -> str:
        """Store `data` under `name`; returns the object path inside the bucket."""
        name = os.path.basename(name)
        ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationFailed("File blueprint harus berupa gambar (PNG/JPG).")
        max_bytes = settings.max_upload_size_mb * 1024 * 1024
        if len(data) > max_bytes:
            raise ValidationFailed(f"Ukuran gambar melebihi {settings.max_upload_size_mb} MB.")

        path = os.path.join(self.bucket_dir, name)
        if os.path.exists(path) and not upsert:
            raise ValidationFailed(f"File {name} sudah ada.")
        with open(path, "wb") as buffer:
            buffer.write(data)
        logger.info("🖼️ Blueprint stored: %s (%d bytes)", name, len(data))
        return name

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/uploads/{self.bucket}/{path}"
