"""
File signature ("magic bytes") checks for uploads.

The declared Content-Type of a multipart part is chosen by the client, so it
is only trusted once the leading bytes of the payload agree with it.
"""

from typing import Dict, Sequence, Tuple

# Each signature is a list of (offset, expected bytes) pairs that must all match
Signature = Sequence[Tuple[int, bytes]]

FILE_SIGNATURES: Dict[str, Signature] = {
    "image/jpeg": [(0, b"\xFF\xD8\xFF")],
    "image/png": [(0, b"\x89\x50\x4E\x47")],
    "image/gif": [(0, b"\x47\x49\x46")],
    "image/webp": [(0, b"RIFF"), (8, b"WEBP")],
    "video/mp4": [(4, b"ftyp")],
    "video/quicktime": [(4, b"ftyp")],
    "video/webm": [(0, b"\x1A\x45\xDF\xA3")],  # EBML header
    "video/x-msvideo": [(0, b"RIFF"), (8, b"AVI ")],
    "application/pdf": [(0, b"%PDF")],
}

FILE_EXTENSIONS: Dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "video/webm": "webm",
    "video/x-msvideo": "avi",
    "application/pdf": "pdf",
}


def validate_magic_bytes(data: bytes, declared_mime_type: str) -> bool:
    """
    Check that ``data`` starts with the signature of ``declared_mime_type``.

    Returns False for types without a known signature and for buffers too
    short to hold the signature.
    """
    signature = FILE_SIGNATURES.get(declared_mime_type)
    if not signature:
        return False

    for offset, expected in signature:
        if data[offset:offset + len(expected)] != expected:
            return False
    return True


def extension_for(mime_type: str) -> str:
    """File extension stored for a validated MIME type."""
    return FILE_EXTENSIONS.get(mime_type, "bin")
