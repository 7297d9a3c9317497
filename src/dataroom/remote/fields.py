"""Field definitions for Google Drive API responses used by DriveBlobStore."""

from __future__ import annotations

# appProperties key holding the hashed storage key of a blob.
STORAGE_KEY_PROP: str = "dataroomKey"

BLOB_FIELDS: str = "id,name,mimeType,size,md5Checksum,appProperties"

LINK_FIELDS: str = "id,webContentLink,webViewLink"

DRIVE_SCOPES: tuple[str, ...] = ("https://www.googleapis.com/auth/drive.file",)
