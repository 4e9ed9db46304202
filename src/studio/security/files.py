"""
Upload Validation

Allowed file types, size limits and magic-byte checks for uploads.
"""
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

MB = 1024 * 1024


@dataclass(frozen=True)
class FileTypeSpec:
    """Accepted upload type"""
    mime_type: str
    extensions: Tuple[str, ...]
    max_size: int
    category: str
    magic: Optional[bytes] = None

    def to_dict(self) -> dict:
        return {
            "mime_type": self.mime_type,
            "extensions": list(self.extensions),
            "max_size": self.max_size,
            "category": self.category,
        }


ALLOWED_TYPES: Dict[str, FileTypeSpec] = {
    file_type.mime_type: file_type for file_type in (
        FileTypeSpec("application/pdf", (".pdf",), 10 * MB, "document", b"%PDF"),
        FileTypeSpec(
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            (".docx",), 10 * MB, "document", b"PK",
        ),
        FileTypeSpec(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            (".xlsx",), 10 * MB, "spreadsheet", b"PK",
        ),
        FileTypeSpec("text/plain", (".txt",), 5 * MB, "document"),
        FileTypeSpec("text/csv", (".csv",), 5 * MB, "spreadsheet"),
        FileTypeSpec("image/png", (".png",), 5 * MB, "image", b"\x89PNG\r\n\x1a\n"),
        FileTypeSpec("image/jpeg", (".jpg", ".jpeg"), 5 * MB, "image", b"\xff\xd8\xff"),
    )
}

_DANGEROUS_PATTERNS = [
    re.compile(r"\.(exe|dll|bat|cmd|sh|js|vbs|ps1|php|asp)$", re.IGNORECASE),
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
]


class UploadRejected(ValueError):
    """Raised when an upload fails validation"""

    def __init__(self, message: str, suspicious: bool = False):
        super().__init__(message)
        self.suspicious = suspicious


def is_dangerous_filename(filename: str) -> bool:
    return any(pattern.search(filename or "") for pattern in _DANGEROUS_PATTERNS)


def validate_file_content(data: bytes, mime_type: str) -> bool:
    """Compare leading bytes against the declared type's signature"""
    file_type = ALLOWED_TYPES.get(mime_type)
    if file_type is None:
        return False
    if file_type.magic is None:
        return True
    return data[:len(file_type.magic)] == file_type.magic


def sanitize_filename(filename: str) -> str:
    safe = re.sub(r"[^a-zA-Z0-9._-]", "_", filename or "")
    safe = re.sub(r"\.{2,}", ".", safe)
    return safe[:100]


def validate_upload(filename: str, content_type: str, data: bytes) -> FileTypeSpec:
    """
    Validate an uploaded file.

    Checks run in order: filename patterns, MIME type, size,
    extension-vs-type, then magic bytes.

    Raises:
        UploadRejected: With a client-facing message
    """
    if is_dangerous_filename(filename):
        raise UploadRejected("File type not allowed", suspicious=True)

    file_type = ALLOWED_TYPES.get(content_type or "")
    if file_type is None:
        raise UploadRejected(f"File type not supported: {content_type}")

    if len(data) > file_type.max_size:
        raise UploadRejected(f"File too large. Maximum size is {file_type.max_size // MB}MB")

    ext = "." + filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext not in file_type.extensions:
        raise UploadRejected("File extension does not match file type")

    if not validate_file_content(data, content_type):
        raise UploadRejected("File content does not match declared type", suspicious=True)

    return file_type
