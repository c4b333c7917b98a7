"""SQLAlchemy ORM models.

Models represent database tables:
- users: Identity-provider users (created lazily)
- presets / preset_packages: Package comparisons and their lookup rows
- likes: One row per (user, preset) like
- packages: npm package metadata (ingested or hydrated on demand)
- tags / package_tags: Category labels and their package associations
"""

from app.models.like import Like
from app.models.package import Package
from app.models.preset import Preset, PresetPackage
from app.models.tag import PackageTag, Tag
from app.models.user import User

__all__ = ["Like", "Package", "PackageTag", "Preset", "PresetPackage", "Tag", "User"]
