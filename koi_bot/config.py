import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    # Telegram
    TELEGRAM_API_ID = int(os.getenv("TELEGRAM_API_ID", "0"))
    TELEGRAM_API_HASH = os.getenv("TELEGRAM_API_HASH")
    TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")

    # On-chain RPC endpoints
    ETH_RPC_URL = os.getenv("ETH_RPC_URL")
    POLYGON_RPC_URL = os.getenv("POLYGON_RPC_URL")
    QUOTE_CACHE_TTL_SECONDS = float(os.getenv("QUOTE_CACHE_TTL_SECONDS", "5"))

    # Message pruning
    PRUNE_WINDOW = int(os.getenv("PRUNE_WINDOW", "10"))
    MENU_PRUNE_WINDOW = int(os.getenv("MENU_PRUNE_WINDOW", "20"))  # Used by /menu
    PRUNE_DELAY_MS = int(os.getenv("PRUNE_DELAY_MS", "10"))  # Pause between deletes

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


config = Config()
