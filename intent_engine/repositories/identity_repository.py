from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update, func, exists
from sqlalchemy.dialects.postgresql import insert as pg_insert

from intent_engine.models.identity import Identity, TrackingSession
from intent_engine.repositories.base import BaseRepository


class IdentityRepository(BaseRepository):
    """Encapsulates queries against ``identities`` and ``tracking_sessions``."""

    async def upsert_by_email(
        self, email: str, name: Optional[str], source: Optional[str]
    ) -> UUID:
        """Insert or refresh the identity for a normalized *email*; return its id.

        A known identity keeps its name/source unless new values are given.
        """
        table = Identity.__table__
        stmt = pg_insert(Identity).values(email=email, name=name, source=source)
        stmt = stmt.on_conflict_do_update(
            index_elements=["email"],
            set_={
                "name": func.coalesce(stmt.excluded.name, table.c.name),
                "source": func.coalesce(stmt.excluded.source, table.c.source),
                "last_seen_at": func.now(),
            },
        ).returning(Identity.identity_id)
        result = await self._db.execute(stmt)
        return result.scalar_one()

    async def link_sessions(self, anonymous_id: UUID, identity_id: UUID) -> int:
        result = await self._db.execute(
            update(TrackingSession)
            .where(TrackingSession.anonymous_id == anonymous_id)
            .values(identity_id=identity_id)
        )
        return result.rowcount or 0

    async def touch_session(
        self, session_id: UUID, anonymous_id: UUID, seen_at: datetime
    ) -> None:
        """Create the session on first sight, otherwise bump ``last_seen_at``."""
        table = TrackingSession.__table__
        stmt = pg_insert(TrackingSession).values(
            session_id=session_id,
            anonymous_id=anonymous_id,
            first_seen_at=seen_at,
            last_seen_at=seen_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["session_id"],
            set_={
                "last_seen_at": func.greatest(
                    table.c.last_seen_at, stmt.excluded.last_seen_at
                )
            },
        )
        await self._db.execute(stmt)

    async def has_other_recent_session(
        self, anonymous_id: UUID, session_id: UUID, since: datetime
    ) -> bool:
        """True when the visitor had a different session seen after *since*."""
        result = await self._db.execute(
            select(
                exists().where(
                    TrackingSession.anonymous_id == anonymous_id,
                    TrackingSession.session_id != session_id,
                    TrackingSession.last_seen_at >= since,
                )
            )
        )
        return bool(result.scalar())
