import asyncio
import logging
import platform

import uvicorn
from campusmart.core.config import settings

# Для Windows: используем SelectorEventLoop вместо ProactorEventLoop
if platform.system() == 'Windows':
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

if __name__ == "__main__":
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Таблицы создаются при старте приложения (lifespan)
    # Важно: reload=True игнорирует host, поэтому используем reload=False для сетевого доступа
    uvicorn.run(
        "campusmart.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=False
    )
