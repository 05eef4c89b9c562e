import os
from typing import Optional

from pydantic import BaseModel


class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "development")
    api_base_url: str = os.getenv("API_BASE_URL", "https://mentormenteemangement.onrender.com")
    ws_base_url: str = os.getenv("WS_BASE_URL", "ws://localhost:8000")
    request_timeout: float = float(os.getenv("MENTEE_PORTAL_REQUEST_TIMEOUT", "10"))
    token_path: str = os.getenv("MENTEE_PORTAL_TOKEN_PATH", ".mentee_portal/session.json")
    login_path: str = os.getenv("MENTEE_PORTAL_LOGIN_PATH", "/login")
    availability_strategy: str = os.getenv("MENTEE_PORTAL_AVAILABILITY_STRATEGY", "per_day")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: Optional[str] = os.getenv("LOG_FILE")


settings = Settings()
