from typing import Any, Dict

from sqlalchemy import select, update, func
from sqlalchemy.dialects.postgresql import insert as pg_insert

from intent_engine.models.qualification_config import QualificationConfig
from intent_engine.repositories.base import BaseRepository

_SINGLETON_ID = 1


class QualificationConfigRepository(BaseRepository):
    """Reads and writes the singleton ``qualification_config`` row."""

    async def get_or_create(self) -> QualificationConfig:
        """Return the config row, inserting the column defaults if missing."""
        await self._db.execute(
            pg_insert(QualificationConfig)
            .values(id=_SINGLETON_ID)
            .on_conflict_do_nothing(index_elements=["id"])
        )
        result = await self._db.execute(
            select(QualificationConfig).where(QualificationConfig.id == _SINGLETON_ID)
        )
        return result.scalar_one()

    async def update_fields(self, values: Dict[str, Any]) -> QualificationConfig:
        await self.get_or_create()
        result = await self._db.execute(
            update(QualificationConfig)
            .where(QualificationConfig.id == _SINGLETON_ID)
            .values(**values, updated_at=func.now())
            .returning(QualificationConfig)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
