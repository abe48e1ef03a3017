from pathlib import Path
from sqlalchemy.ext.asyncio import AsyncEngine
from campusmart.core.database import Base

# Импортируем модели чтобы они попали в metadata перед созданием таблиц
from campusmart.models import user  # noqa: F401
from campusmart.models import listing  # noqa: F401
from campusmart.models import chat  # noqa: F401
from campusmart.models import message  # noqa: F401

async def init_db(engine: AsyncEngine):
    """Инициализация базы данных и создание таблиц"""
    # Гарантируем наличие директории для файла базы данных
    database = engine.url.database
    if engine.url.get_backend_name() == "sqlite" and database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)

    async with engine.begin() as conn:
        # Создаем все таблицы
        await conn.run_sync(Base.metadata.create_all)
