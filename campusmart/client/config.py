from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    # Endpoints
    BASE_URL: str = "http://127.0.0.1:4001/api/v1"
    WS_URL: str = "ws://127.0.0.1:4001/ws/chat"

    # Timeouts, seconds
    HANDSHAKE_TIMEOUT: float = 5.0
    REQUEST_TIMEOUT: float = 10.0
    # Сколько ждать messageSent после отправки через вебсокет
    ACK_TIMEOUT: float = 10.0

    class Config:
        env_prefix = "CAMPUSMART_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
