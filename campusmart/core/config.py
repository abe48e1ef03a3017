from pydantic_settings import BaseSettings
from pathlib import Path
from typing import List

class Settings(BaseSettings):
    # Project
    PROJECT_NAME: str = "Campusmart Chat API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    
    # Paths
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    
    # Server
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 4001
    LOG_LEVEL: str = "INFO"
    
    # Database
    DATABASE_URL: str = f"sqlite+aiosqlite:///{DATA_DIR}/app.db"
    SQL_ECHO: bool = False
    
    # Security
    SECRET_KEY: str = "your-secret-key-here"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    
    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["*"]
    
    # Chat
    CHAT_MAX_MESSAGE_LENGTH: int = 2000
    CHAT_HISTORY_LIMIT: int = 500
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

# Создаем экземпляр настроек
settings = Settings()
