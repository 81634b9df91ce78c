"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_engine.config import get_settings
from settlement_engine.database import init_db
from settlement_engine.settlement.config import SettlementConfig
from settlement_engine.settlement.engine import (
    SettlementEngine,
    SettlementProviders,
    get_providers,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_settlement_config() -> SettlementConfig:
    """Settlement configuration from application settings."""
    return SettlementConfig.from_settings(get_settings())


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Providers = Annotated[SettlementProviders, Depends(get_providers)]
Config = Annotated[SettlementConfig, Depends(get_settlement_config)]


def get_settlement_engine(
    db: DbSession, providers: Providers, config: Config
) -> SettlementEngine:
    """Settlement engine bound to the request's session."""
    return SettlementEngine(db, providers=providers, config=config)


Engine = Annotated[SettlementEngine, Depends(get_settlement_engine)]
