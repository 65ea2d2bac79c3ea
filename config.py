from functools import lru_cache
from typing import List, Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # --- APP ---
    APP_NAME: str = "Store Ratings API"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: Union[List[str], str] = ["*"]

    # --- AUTH ---
    SECRET_KEY: str = "supersecretkey"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 12

    # --- DATABASE ---
    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "store_ratings"

    # --- FIRST ADMIN ---
    ADMIN_NAME: str = "Default System Administrator"
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, v):
        # accepts a JSON array or "http://a.example,http://b.example"
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    def __repr__(self):
        """Hide secrets when printed"""
        return (
            f"<Settings APP_NAME={self.APP_NAME} "
            f"DATABASE_NAME={self.DATABASE_NAME} "
            f"ACCESS_TOKEN_EXPIRE_MINUTES={self.ACCESS_TOKEN_EXPIRE_MINUTES}>"
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
