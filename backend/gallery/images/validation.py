"""Input validation and sanitization for uploads.

All functions here are pure. Validators report problems instead of raising
so the orchestrator can turn them into a 400 response with a stable code.
"""
import os
import uuid
from typing import Any, List, Mapping

from .schemas import ALLOWED_EXTENSIONS, MAX_FIELD_LENGTH, TEXT_FIELDS

_SEPARATORS = {"/", "\\", os.sep} | ({os.altsep} if os.altsep else set())


def get_extension(filename: str) -> str:
    """Return the lower-cased suffix starting at the last ``.``, or ``""``."""
    _, dot, suffix = filename.rpartition(".")
    if not dot:
        return ""
    return f".{suffix}".lower()


def validate_extension(filename: str) -> bool:
    """Check the file extension against the image allow-list.

    Only the part after the last dot matters: ``photo.png.jpg`` is accepted
    as a JPEG and ``photo`` (no dot) is rejected.

    Examples:
        >>> validate_extension("a.JPG")
        True
        >>> validate_extension("a.jpgx")
        False
    """
    if not filename:
        return False
    return get_extension(filename) in ALLOWED_EXTENSIONS


def validate_form_fields(fields: Mapping[str, Any]) -> List[str]:
    """Return one message per text field that is over the length limit.

    Absent or empty fields are fine. The mapping is not modified.
    """
    errors = []
    for field in TEXT_FIELDS:
        value = fields.get(field)
        if value and len(str(value)) > MAX_FIELD_LENGTH:
            errors.append(
                f"{field.capitalize()} is too long (max {MAX_FIELD_LENGTH} characters)"
            )
    return errors


def validate_file_path(candidate: str) -> bool:
    """Reject names that could escape the content directory.

    Only applied to generated names; client filenames never reach the disk.
    """
    if ".." in candidate:
        return False
    return not any(sep in candidate for sep in _SEPARATORS)


def sanitize(value: Any) -> str:
    """Normalize a text field for storage.

    Falsy input becomes ``""``. Otherwise the value is converted to text,
    NUL bytes are removed, surrounding whitespace is trimmed and the result
    is cut to ``MAX_FIELD_LENGTH`` characters. Whitespace exposed by the cut
    is trimmed as well, which keeps the function idempotent.
    """
    if not value:
        return ""
    cleaned = str(value).replace("\0", "").strip()
    return cleaned[:MAX_FIELD_LENGTH].rstrip()


def generate_file_name(filename: str) -> str:
    """Build a storage name ``<uuid4>.<ext>`` from a validated client filename.

    Nothing but the extension is taken from the client's name.
    """
    return f"{uuid.uuid4()}{get_extension(filename)}"
