"""Preset identifiers and input normalization.

Preset id:
- Slugified title + "-" + base-36 millisecond timestamp
- Example: "A vs B" at 1700000000000 ms -> "a-vs-b-loyw3v28"

Package list:
- 2-10 entries as submitted, then trimmed, lower-cased, deduplicated
  (first occurrence wins) and filtered against the npm name pattern
- At least 2 valid names must remain
"""

import re
from datetime import datetime, timezone

from app.errors import ValidationError

TITLE_MAX_LENGTH = 100
MIN_PACKAGES = 2
MAX_PACKAGES = 10

PACKAGE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\-_@./]+$")
TAG_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{0,49}$")

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def slugify(text: str) -> str:
    """Lower-case, strip punctuation, collapse whitespace/underscores into hyphens.

    Example:
        >>> slugify("  React vs. Vue_3!  ")
        "react-vs-vue-3"
    """
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug, flags=re.ASCII)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def to_base36(value: int) -> str:
    """Encode a non-negative integer in base 36 (0-9a-z)."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def compute_preset_id(title: str, created_at: datetime) -> str:
    """Build the preset slug from the title and creation time.

    Titles with no ASCII word characters fall back to "preset".
    """
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    millis = int(created_at.timestamp() * 1000)
    base = slugify(title) or "preset"
    return f"{base}-{to_base36(millis)}"


def normalize_title(title: str | None) -> str:
    """Validate and trim a preset title."""
    if title is None or not title.strip():
        raise ValidationError("Title is required", {"field": "title"})
    title = title.strip()
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Title must be at most {TITLE_MAX_LENGTH} characters",
            {"field": "title", "max_length": TITLE_MAX_LENGTH},
        )
    return title


def normalize_package_names(packages: list[str] | None) -> list[str]:
    """Validate and normalize the submitted package list.

    Raises:
        ValidationError: Wrong count, or fewer than 2 valid names after cleanup.
    """
    if not isinstance(packages, list) or len(packages) < MIN_PACKAGES:
        raise ValidationError(
            f"At least {MIN_PACKAGES} packages are required",
            {"field": "packages", "min_items": MIN_PACKAGES},
        )
    if len(packages) > MAX_PACKAGES:
        raise ValidationError(
            f"At most {MAX_PACKAGES} packages can be compared",
            {"field": "packages", "max_items": MAX_PACKAGES},
        )

    seen: set[str] = set()
    names: list[str] = []
    for raw in packages:
        if not isinstance(raw, str):
            continue
        name = raw.strip().lower()
        if name in seen or not is_valid_package_name(name):
            continue
        seen.add(name)
        names.append(name)

    if len(names) < MIN_PACKAGES:
        raise ValidationError(
            f"At least {MIN_PACKAGES} valid package names are required",
            {"field": "packages", "valid": names},
        )
    return names


def is_valid_package_name(name: str) -> bool:
    return bool(name) and len(name) <= 214 and bool(PACKAGE_NAME_PATTERN.match(name))


def normalize_tag_ids(tag_ids: list[str]) -> list[str]:
    """Trim, lower-case, dedupe and validate tag ids (order preserved)."""
    result: list[str] = []
    for raw in tag_ids:
        tag_id = raw.strip().lower()
        if not tag_id or tag_id in result:
            continue
        if not TAG_ID_PATTERN.match(tag_id):
            raise ValidationError(f"Invalid tag id: {raw!r}", {"field": "tagIds", "value": raw})
        result.append(tag_id)
    return result


def build_npmtrends_url(packages: list[str]) -> str:
    """Comparison URL on npmtrends.com for the given (normalized) packages."""
    return "https://npmtrends.com/" + "-vs-".join(packages)
