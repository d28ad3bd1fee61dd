"""
Configuration settings for the application
"""

import os
from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./wedding_transport.db")

    # Security
    ADMIN_TOKEN: str = os.getenv("ADMIN_TOKEN", "admin_token_123")

    # Application
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")

    # CORS
    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5000",
        "http://localhost:8000",
    ]

    # File limits
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 30

    # Transport grouping
    DEFAULT_ARRIVAL_BUFFER_MINUTES: int = 60
    DEFAULT_DEPARTURE_BUFFER_MINUTES: int = 180
    DEFAULT_PICKUP_LOCATION: str = "Airport"
    DEFAULT_DROPOFF_LOCATION: str = "Hotel/Venue"
    GROUP_BY_PICKUP_LOCATION: bool = False
    REGENERATION_MAX_RETRIES: int = 3

    class Config:
        env_file = ".env"

settings = Settings()
