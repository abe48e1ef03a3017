from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from campusmart.core.config import settings
from campusmart.core.database import make_engine, make_sessionmaker
from campusmart.core.init_db import init_db
from campusmart.api.v1.api import api_router
from campusmart.websockets.chat_ws import router as chat_ws_router
from campusmart.websockets.registry import ConnectionRegistry


def create_app(
    database_url: Optional[str] = None,
    registry: Optional[ConnectionRegistry] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = make_engine(database_url)
        await init_db(engine)
        app.state.session_factory = make_sessionmaker(engine)
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )
    # Реестр живых сессий принадлежит приложению, а не модулю
    app.state.registry = registry or ConnectionRegistry()

    # Настройка CORS
    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Подключаем роутеры API v1
    app.include_router(api_router, prefix=settings.API_V1_STR)

    # Подключаем роутеры БЕЗ префикса для обратной совместимости
    app.include_router(api_router, prefix="")

    # Вебсокет чата
    app.include_router(chat_ws_router)
    return app


app = create_app()
