from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from campusmart.core.config import settings

# Создаем базовый класс для моделей
Base = declarative_base()


def make_engine(database_url: str | None = None, **kwargs) -> AsyncEngine:
    """Создает асинхронный движок SQLAlchemy."""
    kwargs.setdefault("echo", settings.SQL_ECHO)
    return create_async_engine(database_url or settings.DATABASE_URL, **kwargs)


def make_sessionmaker(engine: AsyncEngine) -> sessionmaker:
    """Фабрика сессий, привязанная к движку."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# Функция для получения сессии БД
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
