import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from speech_practice.core.config import settings
from speech_practice.services.context import PracticeContext

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Создает контекст практики при запуске и закрывает HTTP-клиент при
    остановке. Готовый контекст (например, из тестов) не пересоздается.
    """
    logger.info("🚀 Запуск Speech Practice API")

    created = False
    if getattr(app.state, "practice", None) is None:
        app.state.practice = PracticeContext(settings)
        created = True

    try:
        if not app.state.practice.credentials.has_credential():
            logger.warning("⚠️  API key not set: analysis is disabled until it is configured")
        logger.info("✅ Приложение готово")
        yield
    finally:
        logger.info("🛑 Завершение работы...")
        if created:
            await app.state.practice.close()
            app.state.practice = None
        logger.info("👋 Завершение работы выполнено")
