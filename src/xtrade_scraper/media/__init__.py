# ABOUTME: Image mirroring: download, resize and re-encode card images, then re-host them
# ABOUTME: Pipeline stage between extraction and catalog persistence

"""
Media Layer: Mirror third-party card images into owned storage

This layer handles:
- Image download with browser-like headers and retries
- Downscaling and re-encoding with Pillow
- Content-addressed keys and S3-compatible uploads

Data Flow: extraction/ cards → processed image → bucket URL → persistence/
"""

from .images import ImageProcessor, ProcessedImage
from .storage import ObjectMirror, UploadResult, create_storage_client, generate_key

__all__ = [
    "ImageProcessor",
    "ObjectMirror",
    "ProcessedImage",
    "UploadResult",
    "create_storage_client",
    "generate_key",
]
