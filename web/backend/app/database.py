"""Подключение к БД для API"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.config import settings

engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_async_session_maker() -> async_sessionmaker:
    """Получить фабрику сессий (используется в фоновых задачах)"""
    return async_session_maker


async def get_db():
    """Dependency для получения сессии БД"""
    async with async_session_maker() as session:
        yield session


async def init_db():
    """Инициализация БД (создание таблиц)"""
    from shared.database.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Закрыть соединение с БД"""
    await engine.dispose()
