"""Конфигурация приложения"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Настройки приложения"""

    # Telegram Bot
    BOT_TOKEN: str = ""
    CHANNEL_ID: str = ""

    # Database
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "auction"
    DB_PASSWORD: str = ""
    DB_NAME: str = "auction"
    # Полный URL имеет приоритет над DB_* (например sqlite+aiosqlite:///./auction.db)
    DATABASE_URL: str = ""
    DB_ECHO: bool = False

    # Хранилище аукционов: "sql" или "memory" (in-memory для разработки)
    STORAGE_BACKEND: str = "sql"

    # Admin
    ADMIN_USER_IDS: str = ""

    # Anti-sniping (soft-close)
    # Ставка за SOFT_CLOSE_THRESHOLD_SECONDS до конца продлевает аукцион
    # на SOFT_CLOSE_EXTENSION_SECONDS
    SOFT_CLOSE_THRESHOLD_SECONDS: int = 120
    SOFT_CLOSE_EXTENSION_SECONDS: int = 120
    # Ограничения продлений. None - без ограничений
    SOFT_CLOSE_MAX_EXTENSIONS: Optional[int] = None
    SOFT_CLOSE_MAX_TOTAL_SECONDS: Optional[int] = None

    # Auto-bid: сколько встречных авто-ставок за одну ручную ставку
    AUTO_BID_MAX_ROUNDS: int = 1

    # Периодическая проверка истекших аукционов (в секундах). 0 - выключено,
    # аукционы завершаются только при обращении к ним
    AUCTION_SWEEP_INTERVAL_SECONDS: int = 0

    LOG_LEVEL: str = "INFO"

    @property
    def admin_ids_list(self) -> List[int]:
        """Список ID администраторов"""
        if not self.ADMIN_USER_IDS:
            return []
        return [int(uid.strip()) for uid in self.ADMIN_USER_IDS.split(",") if uid.strip()]

    @property
    def database_url(self) -> str:
        """URL подключения к базе данных"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
