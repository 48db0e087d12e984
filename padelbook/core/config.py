"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "PadelBook"
    debug: bool = True
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://padelbook:padelbook@db:5432/padelbook"
    database_echo: bool = False
    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_pool_timeout_seconds: float = 10.0
    database_command_timeout_seconds: float = 10.0
    transaction_attempts: int = 3

    # Identity provider (tokens are issued externally, we only verify them)
    identity_jwt_secret: str = "dev-secret-change-in-production"
    identity_jwt_algorithm: str = "HS256"
    identity_jwt_audience: str | None = None

    # Facility
    facility_timezone: str = "Europe/Paris"

    # Booking rules
    slots_per_reservation: int = 4
    max_tickets_per_reservation: int = 3
    max_active_reservations: int = 2
    modification_deadline_minutes: int = 30
    max_reservation_minutes: int = 24 * 60
    max_co_occupants_reported: int = 10
    enforce_slot_grid: bool = False

    model_config = {"env_prefix": "PB_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
