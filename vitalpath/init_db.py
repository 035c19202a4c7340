from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from vitalpath.db import engine as default_engine
from vitalpath.models import Base


async def init_db(engine: AsyncEngine | None = None) -> None:
    # sqlite pragmas are applied per connection in vitalpath.db
    async with (engine or default_engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
