"""Avatar storage bucket.

Files live under ``storage.avatars_dir`` as ``<user_id>/avatar.<ext>`` and
are served from ``storage.public_base_url``.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from accreda.config.app_config import StorageConfig, load_app_config

logger = structlog.get_logger(__name__)

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
MAX_AVATAR_BYTES = 2 * 1024 * 1024


class AvatarUploadError(Exception):
    """Error storing an avatar."""

    pass


class AvatarStorage:
    """Local bucket keyed by identity."""

    def __init__(self, config: StorageConfig | None = None):
        self.config = config or load_app_config().storage
        self.root = Path(self.config.avatars_dir)

    def upload(self, user_id: str, content: bytes, extension: str) -> str:
        """Store an avatar, replacing any previous one.

        Returns:
            Public URL of the stored file

        Raises:
            AvatarUploadError: If the extension or size is not allowed
        """
        ext = extension.lower().lstrip(".")
        if ext not in ALLOWED_EXTENSIONS:
            raise AvatarUploadError(f"Unsupported image type: {extension}")
        if not content:
            raise AvatarUploadError("Empty file")
        if len(content) > MAX_AVATAR_BYTES:
            raise AvatarUploadError("Avatar larger than 2 MB")

        user_dir = self.root / user_id
        user_dir.mkdir(parents=True, exist_ok=True)
        for old in user_dir.glob("avatar.*"):
            old.unlink()

        filename = f"avatar.{ext}"
        (user_dir / filename).write_bytes(content)
        logger.info("avatars.uploaded", user_id=user_id, size=len(content))
        return self.public_url(user_id, filename)

    def public_url(self, user_id: str, filename: str = "avatar.png") -> str:
        return f"{self.config.public_base_url.rstrip('/')}/{user_id}/{filename}"

    def delete(self, user_id: str) -> bool:
        """Remove all stored files of an identity."""
        user_dir = self.root / user_id
        if not user_dir.exists():
            return False
        for path in user_dir.iterdir():
            path.unlink()
        user_dir.rmdir()
        return True
