"""Store adapter: typed data access over PostgreSQL.

Every public method is one logical transaction (one `get_session()` block).
Callers get plain records back, never ORM objects or SQL.

Failure mapping:
- IntegrityError (unique / composite key violation) -> ConflictError
- any other SQLAlchemyError -> StoreError
Nothing is retried here.

No caching in this module - that belongs in services.
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any

from sqlalchemy import delete, exists, func, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import ConflictError, NotFoundError, StoreError, ValidationError
from app.models import Like, Package, PackageTag, Preset, PresetPackage, Tag, User
from app.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

PACKAGE_FIELDS = ("description", "weekly_downloads", "repository", "homepage")


# ============================================================
# Records
# ============================================================


@dataclass
class LikeState:
    """Current like state of one (user, preset) pair."""

    liked: bool
    likes_count: int


@dataclass
class PresetRecord:
    id: str
    title: str
    packages: list[str]
    npmtrends_url: str
    owner_id: str
    likes_count: int
    created_at: datetime
    owner_name: str | None = None
    owner_avatar: str | None = None
    # Only set for viewer-scoped reads
    liked: bool | None = None


@dataclass
class TagRecord:
    id: str
    name: str
    color: str
    package_count: int | None = None


@dataclass
class PackageRecord:
    id: str
    description: str | None
    weekly_downloads: int
    repository: str | None
    homepage: str | None
    last_update: datetime | None
    tags: list[TagRecord] = field(default_factory=list)


@dataclass
class UserStats:
    presets_count: int
    total_likes: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dialect_insert(session: AsyncSession, model: type) -> Any:
    """INSERT construct supporting ON CONFLICT for the bound dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise StoreError(f"Unsupported database dialect: {dialect}")


class PresetStore:
    """Atomic operations on users, presets, likes, packages and tags."""

    def __init__(self, session_factory: SessionFactory = get_session):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._session_factory() as session:
                yield session
        except IntegrityError as e:
            raise ConflictError("Uniqueness constraint violated", {"reason": str(e.orig)}) from e
        except SQLAlchemyError as e:
            logger.error(f"Store operation failed: {e}")
            raise StoreError("Database operation failed") from e

    # ============================================================
    # Users
    # ============================================================

    async def ensure_user(self, user_id: str, name: str | None = None, avatar_url: str | None = None) -> None:
        """Create the user row if absent (safe under concurrent first writes)."""
        async with self._transaction() as session:
            stmt = (
                _dialect_insert(session, User)
                .values(id=user_id, name=name, avatar_url=avatar_url)
                .on_conflict_do_nothing(index_elements=[User.id])
            )
            await session.execute(stmt)

    async def get_user_stats(self, user_id: str) -> UserStats:
        async with self._transaction() as session:
            row = (
                await session.execute(
                    select(
                        func.count(Preset.id),
                        func.coalesce(func.sum(Preset.likes_count), 0),
                    ).where(Preset.owner_id == user_id)
                )
            ).one()
            return UserStats(presets_count=int(row[0] or 0), total_likes=int(row[1] or 0))

    # ============================================================
    # Presets
    # ============================================================

    async def create_preset(
        self,
        preset_id: str,
        title: str,
        packages: list[str],
        owner_id: str,
        npmtrends_url: str,
        created_at: datetime | None = None,
    ) -> PresetRecord:
        """Insert a preset and its package lookup rows atomically.

        Input must already be validated/normalized (see app.services.slugs).
        """
        created_at = created_at or _utcnow()
        async with self._transaction() as session:
            session.add(
                Preset(
                    id=preset_id,
                    title=title,
                    packages=list(packages),
                    npmtrends_url=npmtrends_url,
                    owner_id=owner_id,
                    likes_count=0,
                    created_at=created_at,
                )
            )
            session.add_all(
                PresetPackage(preset_id=preset_id, package_name=name, position=position)
                for position, name in enumerate(packages)
            )
            await session.flush()

            owner = await session.get(User, owner_id)
            return PresetRecord(
                id=preset_id,
                title=title,
                packages=list(packages),
                npmtrends_url=npmtrends_url,
                owner_id=owner_id,
                likes_count=0,
                created_at=created_at,
                owner_name=owner.name if owner else None,
                owner_avatar=owner.avatar_url if owner else None,
            )

    def _preset_select(self, viewer_id: str | None):
        columns = [Preset, User.name, User.avatar_url]
        if viewer_id:
            liked = (
                exists()
                .where(Like.preset_id == Preset.id)
                .where(Like.user_id == viewer_id)
                .label("liked")
            )
            columns.append(liked)
        return select(*columns).outerjoin(User, User.id == Preset.owner_id)

    @staticmethod
    def _preset_record(row: Any, viewer_id: str | None) -> PresetRecord:
        preset: Preset = row[0]
        return PresetRecord(
            id=preset.id,
            title=preset.title,
            packages=list(preset.packages or []),
            npmtrends_url=preset.npmtrends_url,
            owner_id=preset.owner_id,
            likes_count=preset.likes_count or 0,
            created_at=preset.created_at,
            owner_name=row[1],
            owner_avatar=row[2],
            liked=bool(row[3]) if viewer_id else None,
        )

    async def get_preset(self, preset_id: str, viewer_id: str | None = None) -> PresetRecord | None:
        async with self._transaction() as session:
            row = (
                await session.execute(self._preset_select(viewer_id).where(Preset.id == preset_id))
            ).one_or_none()
            if row is None:
                return None
            return self._preset_record(row, viewer_id)

    async def list_presets(
        self,
        sort: str,
        limit: int,
        offset: int = 0,
        viewer_id: str | None = None,
    ) -> list[PresetRecord]:
        """List presets.

        Args:
            sort: "likes" (likes_count DESC, newest first on ties) or "new".
            limit: Max rows.
            offset: Rows to skip.
            viewer_id: If set, each record carries the viewer's `liked` flag.
        """
        stmt = self._preset_select(viewer_id)
        if sort == "likes":
            stmt = stmt.order_by(Preset.likes_count.desc(), Preset.created_at.desc(), Preset.id)
        elif sort == "new":
            stmt = stmt.order_by(Preset.created_at.desc(), Preset.id)
        else:
            raise ValidationError(f"Unknown sort: {sort}", {"field": "sort"})

        async with self._transaction() as session:
            rows = (await session.execute(stmt.limit(limit).offset(offset))).all()
            return [self._preset_record(row, viewer_id) for row in rows]

    async def list_presets_for_package(self, package_name: str, limit: int) -> list[PresetRecord]:
        """Presets that compare the given package, most liked first."""
        stmt = (
            self._preset_select(None)
            .join(PresetPackage, PresetPackage.preset_id == Preset.id)
            .where(PresetPackage.package_name == package_name)
            .order_by(Preset.likes_count.desc(), Preset.created_at.desc(), Preset.id)
            .limit(limit)
        )
        async with self._transaction() as session:
            rows = (await session.execute(stmt)).all()
            return [self._preset_record(row, None) for row in rows]

    # ============================================================
    # Likes
    # ============================================================

    async def toggle_like(self, user_id: str, preset_id: str) -> LikeState:
        """Flip the like state and move the counter in one transaction.

        The preset row is locked (FOR UPDATE on PostgreSQL) so toggles on one
        preset serialize. Where the lock is unavailable, a lost race is still
        detected: a duplicate insert violates the (user_id, preset_id) key and
        a delete that removes nothing is rejected. Both roll back the whole
        unit and raise ConflictError.

        Raises:
            NotFoundError: Preset does not exist.
            ConflictError: Concurrent toggle won the race.
        """
        async with self._transaction() as session:
            found = await session.scalar(
                select(Preset.id).where(Preset.id == preset_id).with_for_update()
            )
            if found is None:
                raise NotFoundError(f"Preset {preset_id} not found", {"preset_id": preset_id})

            already_liked = await session.scalar(
                select(exists().where(Like.user_id == user_id).where(Like.preset_id == preset_id))
            )

            if already_liked:
                result = await session.execute(
                    delete(Like)
                    .where(Like.user_id == user_id)
                    .where(Like.preset_id == preset_id)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise ConflictError(
                        "Like was removed concurrently",
                        {"user_id": user_id, "preset_id": preset_id},
                    )
                delta = -1
            else:
                await session.execute(insert(Like).values(user_id=user_id, preset_id=preset_id))
                delta = 1

            await session.execute(
                update(Preset)
                .where(Preset.id == preset_id)
                .values(likes_count=Preset.likes_count + delta)
                .execution_options(synchronize_session=False)
            )
            likes_count = await session.scalar(select(Preset.likes_count).where(Preset.id == preset_id))
            return LikeState(liked=delta > 0, likes_count=int(likes_count or 0))

    async def get_like_state(self, user_id: str, preset_id: str) -> LikeState:
        """Read back the committed like state."""
        async with self._transaction() as session:
            likes_count = await session.scalar(select(Preset.likes_count).where(Preset.id == preset_id))
            if likes_count is None:
                raise NotFoundError(f"Preset {preset_id} not found", {"preset_id": preset_id})
            liked = await session.scalar(
                select(exists().where(Like.user_id == user_id).where(Like.preset_id == preset_id))
            )
            return LikeState(liked=bool(liked), likes_count=int(likes_count))

    async def count_likes(self, preset_id: str) -> int:
        """Number of like rows for a preset (ground truth for likes_count)."""
        async with self._transaction() as session:
            count = await session.scalar(select(func.count()).select_from(Like).where(Like.preset_id == preset_id))
            return int(count or 0)

    # ============================================================
    # Packages
    # ============================================================

    async def _tags_for_packages(self, session: AsyncSession, package_ids: list[str]) -> dict[str, list[TagRecord]]:
        if not package_ids:
            return {}
        rows = (
            await session.execute(
                select(PackageTag.package_id, Tag)
                .join(Tag, Tag.id == PackageTag.tag_id)
                .where(PackageTag.package_id.in_(package_ids))
                .order_by(Tag.name)
            )
        ).all()
        result: dict[str, list[TagRecord]] = {pid: [] for pid in package_ids}
        for package_id, tag in rows:
            result[package_id].append(TagRecord(id=tag.id, name=tag.name, color=tag.color))
        return result

    @staticmethod
    def _package_record(package: Package, tags: list[TagRecord]) -> PackageRecord:
        return PackageRecord(
            id=package.id,
            description=package.description,
            weekly_downloads=package.weekly_downloads or 0,
            repository=package.repository,
            homepage=package.homepage,
            last_update=package.last_update,
            tags=tags,
        )

    async def get_package(self, package_id: str) -> PackageRecord | None:
        async with self._transaction() as session:
            package = await session.get(Package, package_id)
            if package is None:
                return None
            tags = await self._tags_for_packages(session, [package_id])
            return self._package_record(package, tags.get(package_id, []))

    async def upsert_package(self, package_id: str, fields: dict[str, Any]) -> PackageRecord:
        """Insert or update a package by natural key.

        Repeating the same upsert is a no-op in effect, so concurrent
        hydrations of one package are safe.
        """
        values: dict[str, Any] = {k: v for k, v in fields.items() if k in PACKAGE_FIELDS}
        values["last_update"] = _utcnow()

        async with self._transaction() as session:
            stmt = _dialect_insert(session, Package).values(id=package_id, **values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Package.id],
                set_={key: stmt.excluded[key] for key in values},
            )
            await session.execute(stmt)

            package = (
                await session.execute(
                    select(Package).where(Package.id == package_id).execution_options(populate_existing=True)
                )
            ).scalar_one()
            tags = await self._tags_for_packages(session, [package_id])
            return self._package_record(package, tags.get(package_id, []))

    async def search_packages(self, query: str, limit: int) -> list[PackageRecord]:
        """Packages whose name contains `query`, most downloaded first."""
        stmt = select(Package)
        if query:
            stmt = stmt.where(func.lower(Package.id).contains(query.lower(), autoescape=True))
        stmt = stmt.order_by(Package.weekly_downloads.desc(), Package.id).limit(limit)

        async with self._transaction() as session:
            packages = (await session.execute(stmt)).scalars().all()
            tags = await self._tags_for_packages(session, [p.id for p in packages])
            return [self._package_record(p, tags.get(p.id, [])) for p in packages]

    async def list_packages_by_tags(
        self,
        tag_ids: list[str],
        exclude_id: str | None = None,
        limit: int = 20,
    ) -> list[PackageRecord]:
        """Packages carrying any of `tag_ids`.

        Ordered by number of matching tags, then weekly downloads.
        """
        if not tag_ids:
            return []

        match_count = func.count(PackageTag.tag_id).label("match_count")
        stmt = (
            select(Package, match_count)
            .join(PackageTag, PackageTag.package_id == Package.id)
            .where(PackageTag.tag_id.in_(tag_ids))
            .group_by(Package.id)
            .order_by(match_count.desc(), Package.weekly_downloads.desc(), Package.id)
            .limit(limit)
        )
        if exclude_id:
            stmt = stmt.where(Package.id != exclude_id)

        async with self._transaction() as session:
            packages = [row[0] for row in (await session.execute(stmt)).all()]
            tags = await self._tags_for_packages(session, [p.id for p in packages])
            return [self._package_record(p, tags.get(p.id, [])) for p in packages]

    async def assign_package_tags(self, package_id: str, tag_ids: list[str]) -> tuple[list[str], list[str]]:
        """Replace a package's tag set (delete-then-insert, one transaction).

        Returns:
            (previous tag ids, new tag ids)

        Raises:
            NotFoundError: Package does not exist.
            ValidationError: Some tag ids are unknown.
        """
        async with self._transaction() as session:
            if await session.get(Package, package_id) is None:
                raise NotFoundError(f"Package {package_id} not found", {"package_id": package_id})

            if tag_ids:
                known = set((await session.execute(select(Tag.id).where(Tag.id.in_(tag_ids)))).scalars().all())
                unknown = [t for t in tag_ids if t not in known]
                if unknown:
                    raise ValidationError("Unknown tags", {"unknown": unknown})

            previous = list(
                (
                    await session.execute(
                        select(PackageTag.tag_id).where(PackageTag.package_id == package_id).order_by(PackageTag.tag_id)
                    )
                ).scalars().all()
            )

            await session.execute(
                delete(PackageTag)
                .where(PackageTag.package_id == package_id)
                .execution_options(synchronize_session=False)
            )
            if tag_ids:
                await session.execute(
                    insert(PackageTag),
                    [{"package_id": package_id, "tag_id": tag_id} for tag_id in tag_ids],
                )
            return previous, list(tag_ids)

    # ============================================================
    # Tags
    # ============================================================

    def _tag_select(self):
        package_count = func.count(PackageTag.package_id).label("package_count")
        return (
            select(Tag, package_count)
            .outerjoin(PackageTag, PackageTag.tag_id == Tag.id)
            .group_by(Tag.id)
        )

    async def list_tags(self) -> list[TagRecord]:
        async with self._transaction() as session:
            rows = (await session.execute(self._tag_select().order_by(Tag.name, Tag.id))).all()
            return [
                TagRecord(id=tag.id, name=tag.name, color=tag.color, package_count=int(count or 0))
                for tag, count in rows
            ]

    async def get_tag(self, tag_id: str) -> TagRecord | None:
        async with self._transaction() as session:
            row = (await session.execute(self._tag_select().where(Tag.id == tag_id))).one_or_none()
            if row is None:
                return None
            tag, count = row
            return TagRecord(id=tag.id, name=tag.name, color=tag.color, package_count=int(count or 0))

    async def upsert_tag(self, tag_id: str, name: str, color: str) -> TagRecord:
        async with self._transaction() as session:
            stmt = _dialect_insert(session, Tag).values(id=tag_id, name=name, color=color)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Tag.id],
                set_={"name": stmt.excluded.name, "color": stmt.excluded.color},
            )
            await session.execute(stmt)
            return TagRecord(id=tag_id, name=name, color=color)
