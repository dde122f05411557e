"""File validation utilities for attachment uploads

Media-type allow-list, size limits and display-filename hygiene. Nothing in
here touches storage; the store calls these before writing a single byte.
"""

import os
import re
from typing import Optional, Tuple


# Accepted attachment media types
SUPPORTED_MEDIA_TYPES = frozenset({
    'image/jpeg',
    'image/png',
    'application/pdf',
})

# Non-standard spellings some clients send for the same types
MEDIA_TYPE_ALIASES = {
    'image/jpg': 'image/jpeg',
    'image/pjpeg': 'image/jpeg',
    'image/x-png': 'image/png',
}

# Default per-file limit (5MB); the effective value comes from settings
DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024


def normalize_media_type(media_type: Optional[str]) -> str:
    """Lower-case a declared media type and drop parameters.

    Example:
        >>> normalize_media_type('Image/JPG; charset=binary')
        'image/jpeg'
    """
    if not media_type:
        return ''
    base = media_type.split(';', 1)[0].strip().lower()
    return MEDIA_TYPE_ALIASES.get(base, base)


def is_supported_media_type(media_type: Optional[str]) -> bool:
    """Check if a declared media type is accepted for attachments

    Example:
        >>> is_supported_media_type('application/pdf')
        True
        >>> is_supported_media_type('application/msword')
        False
    """
    return normalize_media_type(media_type) in SUPPORTED_MEDIA_TYPES


def validate_file_size(size_bytes: int, max_size: Optional[int] = None) -> Tuple[bool, Optional[str]]:
    """Validate file size is within limits

    Args:
        size_bytes: File size in bytes
        max_size: Maximum allowed size (defaults to DEFAULT_MAX_FILE_SIZE)

    Returns:
        Tuple of (is_valid, error_message)

    Example:
        >>> validate_file_size(1024)
        (True, None)
        >>> validate_file_size(0)
        (False, 'File is empty (0 bytes)')
    """
    if max_size is None:
        max_size = DEFAULT_MAX_FILE_SIZE

    if size_bytes == 0:
        return False, "File is empty (0 bytes)"

    if size_bytes > max_size:
        return False, f"File exceeds maximum size of {max_size} bytes (got {size_bytes} bytes)"

    return True, None


def validate_filename(filename: Optional[str]) -> Tuple[bool, Optional[str]]:
    """Validate a client-supplied filename

    The filename is kept for display only, but control characters and
    oversize names are still rejected.

    Example:
        >>> validate_filename('aadhar.pdf')
        (True, None)
        >>> validate_filename('')
        (False, 'Filename cannot be empty')
    """
    if not filename or len(filename.strip()) == 0:
        return False, "Filename cannot be empty"

    if len(filename) > 255:
        return False, f"Filename exceeds 255 characters (got {len(filename)})"

    if '\x00' in filename:
        return False, "Filename contains null bytes"

    if any(ord(c) < 32 for c in filename):
        return False, "Filename contains control characters"

    return True, None


def sanitize_filename(filename: Optional[str]) -> str:
    """Sanitize filename for display and Content-Disposition headers

    Example:
        >>> sanitize_filename('../../aadhar card.pdf')
        'aadhar_card.pdf'
    """
    if not filename:
        return 'attachment'

    # Remove path components (both separators, whatever the host OS)
    filename = os.path.basename(filename.replace('\\', '/'))

    filename = re.sub(r'[^\w\s.-]', '_', filename)
    filename = re.sub(r'[\s_]+', '_', filename)

    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[:255 - len(ext)] + ext

    return filename or 'attachment'
