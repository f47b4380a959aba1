"""Image upload and listing module for the photo gallery.

Uploads are validated, written to the content directory under a generated
``{uuid}.{ext}`` name and then recorded in the ``images`` table. If the
insert fails, the written file is removed again.

Supported file types: jpg, jpeg, png, gif, webp (up to 50MB by default).
"""

from .router import router
from .service import IngestionService, UploadOutcome, UploadRequest, UploadState

__all__ = [
    "IngestionService",
    "UploadOutcome",
    "UploadRequest",
    "UploadState",
    "router",
]
