# mediavault/validation.py
"""
Pure predicates for content metadata bounds.
"""

from typing import Any, List

from .errors import FileSizeViolation, InvalidMetadata, TagValidationFailed

TITLE_MAX = 64
DESCRIPTION_MAX = 128
TAG_MAX = 32
TAGS_MAX = 10
SIZE_LIMIT = 1_000_000_000  # exclusive


def _is_bounded_text(value: Any, max_length: int) -> bool:
    return isinstance(value, str) and 1 <= len(value) <= max_length


def is_valid_tag(tag: Any) -> bool:
    """True iff the tag is 1-32 characters."""
    return _is_bounded_text(tag, TAG_MAX)


def is_valid_tag_collection(tags: Any) -> bool:
    """
    True iff there are 1-10 tags and each is a valid tag.

    Duplicates are allowed.
    """
    if isinstance(tags, (str, bytes)) or not isinstance(tags, (list, tuple)):
        return False
    if not 1 <= len(tags) <= TAGS_MAX:
        return False
    return all(is_valid_tag(t) for t in tags)


def is_valid_title(title: Any) -> bool:
    return _is_bounded_text(title, TITLE_MAX)


def is_valid_description(description: Any) -> bool:
    return _is_bounded_text(description, DESCRIPTION_MAX)


def is_valid_size(size_bytes: Any) -> bool:
    # bool is an int subclass
    if isinstance(size_bytes, bool) or not isinstance(size_bytes, int):
        return False
    return 1 <= size_bytes < SIZE_LIMIT


def validate_metadata(title: Any, size_bytes: Any, description: Any, tags: Any) -> List[str]:
    """
    Check a full metadata payload, raising on the first violation.

    Order: title, size, description, tags.

    Returns:
        The tags as a fresh list, safe to store.
    """
    if not is_valid_title(title):
        raise InvalidMetadata("title must be 1-64 characters")
    if not is_valid_size(size_bytes):
        raise FileSizeViolation(f"size_bytes must be in [1, {SIZE_LIMIT})")
    if not is_valid_description(description):
        raise InvalidMetadata("description must be 1-128 characters")
    if not is_valid_tag_collection(tags):
        raise TagValidationFailed("tags must be 1-10 entries of 1-32 characters")
    return list(tags)
