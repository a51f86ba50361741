from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
from pydantic import field_validator

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./bloodbank.db"

    # Application
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    APP_NAME: str = "Blood Bank API"
    APP_VERSION: str = "1.0.0"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173,http://127.0.0.1:3000"

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: str = "logs/app.log"

    # Database Connection Pool (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600

    # Donation rules
    DONATION_INTERVAL_DAYS: int = 56  # minimum days between whole blood donations
    BLOOD_SHELF_LIFE_DAYS: int = 42
    UNITS_PER_DONATION: int = 1

    # Donor matching
    MATCH_BUFFER_FACTOR: int = 2  # candidates returned per unit needed
    SIMULATE_DONOR_DISTANCES: bool = False  # demo mode only: random 0-50 km distances
    SIMULATED_DISTANCE_MAX_KM: float = 50.0

    # Inventory alerts
    LOW_STOCK_THRESHOLD: int = 5
    EXPIRING_WINDOW_DAYS: int = 7

    # Email gateway (delivery is simulated when EMAIL_SERVICE_URL is empty)
    EMAIL_SERVICE_URL: str = ""
    EMAIL_API_KEY: str = ""
    EMAIL_SENDER: str = "noreply@blooddonation.com"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    @field_validator('DEBUG', 'SIMULATE_DONOR_DISTANCES', mode='before')
    @classmethod
    def parse_bool(cls, v):
        """Parse boolean from string."""
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes")
        return bool(v)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Convert comma-separated strings to lists after initialization
        self._cors_origins_list = [item.strip() for item in self.CORS_ORIGINS.split(',') if item.strip()]

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS_ORIGINS as a list."""
        return self._cors_origins_list

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
