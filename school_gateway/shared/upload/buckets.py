"""Object storage buckets that accept uploads, and their limits."""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
VIDEO_TYPES = frozenset({"video/mp4", "video/webm", "video/quicktime", "video/x-msvideo"})
PDF_TYPES = frozenset({"application/pdf"})

MB = 1024 * 1024


@dataclass(frozen=True)
class BucketConfig:
    max_size_bytes: int
    allowed_mime_types: FrozenSet[str]
    requires_admin: bool = True

    @property
    def max_size_mb(self) -> float:
        return self.max_size_bytes / MB


BUCKETS: Dict[str, BucketConfig] = {
    "gallery-images": BucketConfig(max_size_bytes=5 * MB, allowed_mime_types=IMAGE_TYPES),
    "gallery-videos": BucketConfig(max_size_bytes=100 * MB, allowed_mime_types=VIDEO_TYPES),
    "hero-images": BucketConfig(max_size_bytes=5 * MB, allowed_mime_types=IMAGE_TYPES),
    "principal-images": BucketConfig(max_size_bytes=5 * MB, allowed_mime_types=IMAGE_TYPES),
    "teacher-photos": BucketConfig(max_size_bytes=5 * MB, allowed_mime_types=IMAGE_TYPES),
    "library-pdfs": BucketConfig(max_size_bytes=50 * MB, allowed_mime_types=PDF_TYPES),
}


def get_bucket_config(bucket: str, buckets: Optional[Dict[str, BucketConfig]] = None) -> Optional[BucketConfig]:
    """Look up a bucket by exact name. Unknown buckets return None."""
    return (BUCKETS if buckets is None else buckets).get(bucket)
