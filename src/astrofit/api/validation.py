"""Validation utilities for Astrofit render requests."""

import logging
import math
import re

from .models import RenderRequest

logger = logging.getLogger(__name__)

_FILENAME_UNSAFE_RE = re.compile(r'[<>:"/\\|?*]|[^\x20-\x7e\xa0-\xff]')


class ValidationError(Exception):
    """User-friendly validation error.

    This exception is raised when request input fails validation.
    The message is intended to be returned directly to the client.
    """

    pass


def validate_render_request(req: RenderRequest) -> None:
    """Validate the parts of a render request pydantic cannot express.

    ``nasa_id`` must be non-blank and both sides must be positive finite
    numbers.  Missing values arrive as empty string / ``0`` defaults.

    Args:
        req: Parsed render request

    Raises:
        ValidationError: If validation fails
    """
    if not req.nasa_id.strip() or not _positive(req.w) or not _positive(req.h):
        raise ValidationError("Missing nasa_id, w, h")


def _positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


def validate_nasa_id(nasa_id: str | None) -> str:
    """Return a stripped NASA id or raise if it is blank.

    Raises:
        ValidationError: If the id is missing or blank
    """
    if not nasa_id or not nasa_id.strip():
        raise ValidationError("Missing nasa_id")
    return nasa_id.strip()


def format_dimension(value: float) -> str:
    """Render a requested dimension the way it appears in filenames.

    Whole numbers drop the decimal point (``1920.0`` -> ``"1920"``).
    """
    return str(int(value)) if float(value).is_integer() else str(value)


def sanitize_filename_input(text: str) -> str:
    """Sanitize user input for use in a Content-Disposition filename.

    Args:
        text: User input text

    Returns:
        Sanitized text safe for filenames
    """
    cleaned = _FILENAME_UNSAFE_RE.sub("_", text)
    if cleaned != text:
        logger.debug("Sanitized filename input %r -> %r", text, cleaned)

    # Limit length
    return cleaned[:100]


def build_download_filename(nasa_id: str, suffix: str, label: str | None = None) -> str:
    """Assemble ``<id>[_<label>]_<suffix>.jpg`` for a Content-Disposition header.

    Only the caller-supplied ``nasa_id`` and ``label`` are sanitized and
    length-limited, so the size/mode suffix and extension always survive.
    """
    parts = [sanitize_filename_input(nasa_id)]
    if label:
        parts.append(sanitize_filename_input(label))
    parts.append(suffix)
    return "_".join(parts) + ".jpg"
