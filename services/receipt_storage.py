"""Payment receipt image storage on the local filesystem, one directory per bucket."""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path
from typing import Dict, Iterable, List
from uuid import uuid4

from PIL import Image, UnidentifiedImageError
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename


ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "heic", "heif"}
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class ReceiptStorage:
    """Stores uploaded receipts as JPEG files and serves them under ``base_url``."""

    def __init__(self, root_dir: Path, base_url: str = "/receipts") -> None:
        self._root_dir = root_dir
        self._base_url = base_url.rstrip("/")
        self._root_dir.mkdir(parents=True, exist_ok=True)

    def bucket_dir(self, bucket: str) -> Path:
        safe = secure_filename(bucket)
        if not safe:
            raise ValueError("Invalid bucket name.")
        path = self._root_dir / safe
        path.mkdir(parents=True, exist_ok=True)
        return path

    def upload_image(self, uploaded: FileStorage, bucket: str) -> str:
        """Validate and store an upload, returning its public URL."""

        binary = self._read_upload(uploaded)
        filename = self._safe_filename(uploaded.filename)
        target = self.bucket_dir(bucket) / filename
        with Image.open(BytesIO(binary)) as image:
            rgb = image.convert("RGB")
            rgb.save(target, format="JPEG", quality=90)
        return f"{self._base_url}/{target.parent.name}/{filename}"

    def preview_data_url(self, uploaded: FileStorage) -> str:
        binary = self._read_upload(uploaded)
        mimetype = uploaded.mimetype or "image/jpeg"
        b64 = base64.b64encode(binary).decode("ascii")
        return f"data:{mimetype};base64,{b64}"

    def list_files(self, bucket: str, limit: int = 1000, offset: int = 0) -> List[Dict]:
        """Files of ``bucket`` sorted by creation time, oldest first."""

        entries = []
        for path in self.bucket_dir(bucket).iterdir():
            if not path.is_file():
                continue
            created = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            entries.append({"name": path.name, "created_at": created})
        entries.sort(key=lambda e: (e["created_at"], e["name"]))
        return entries[offset : offset + limit]

    def remove(self, bucket: str, names: Iterable[str]) -> List[str]:
        directory = self.bucket_dir(bucket)
        removed = []
        for name in names:
            path = directory / secure_filename(name)
            if path.is_file():
                path.unlink()
                removed.append(name)
        return removed

    def _read_upload(self, uploaded: FileStorage) -> bytes:
        if uploaded is None or not (uploaded.filename or "").strip():
            raise ValueError("Please choose a receipt image to upload.")
        ext = uploaded.filename.rsplit(".", 1)[-1].lower() if "." in uploaded.filename else ""
        if ext not in ALLOWED_EXTENSIONS:
            raise ValueError("Receipts must be JPG, PNG, WEBP or HEIC images.")
        uploaded.stream.seek(0)
        binary = uploaded.read()
        uploaded.stream.seek(0)
        if not binary:
            raise ValueError("The uploaded image is empty.")
        if len(binary) > MAX_UPLOAD_BYTES:
            raise ValueError("Receipt images must be 10 MB or smaller.")
        try:
            with Image.open(BytesIO(binary)) as image:
                image.verify()
        except (UnidentifiedImageError, OSError) as exc:
            raise ValueError("The uploaded file is not a readable image.") from exc
        return binary

    def _safe_filename(self, original: str) -> str:
        stem = secure_filename(Path(original).stem).lower()[:16] or "receipt"
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        return f"{stamp}_{stem}_{uuid4().hex[:8]}.jpg"
