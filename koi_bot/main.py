import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import config as app_config
from .dialogue import InMemoryConversationStore
from .telegram_bot import TelegramBot

# Initialize logging
logging.basicConfig(
    level=app_config.LOG_LEVEL,
    format="[%(levelname)s] [%(name)s] - %(message)s",
)
logger = logging.getLogger(__name__)

# Conversation state lives in this process only
conversation_store = InMemoryConversationStore()

# Initialize Telegram bot (will be started in lifespan)
telegram_bot: TelegramBot = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    global telegram_bot

    # Startup
    logger.info("Starting buttons bot...")

    # Start Telegram bot in background
    telegram_bot = TelegramBot(conversation_store)
    bot_task = asyncio.create_task(telegram_bot.start())
    logger.info("Telegram bot started")

    yield

    # Shutdown
    logger.info("Shutting down...")
    if telegram_bot:
        await telegram_bot.stop()
    bot_task.cancel()


app = FastAPI(lifespan=lifespan)


# Health check endpoint for Dokku
@app.get("/health")
async def health_check():
    return {"status": "healthy", "conversations": len(conversation_store)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
