from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application configuration settings"""

    # Application
    app_name: str = "Ujian GTO"
    debug: bool = False
    api_version: str = "v1"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "sqlite:///./ujian_gto.db"

    # CORS
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # Blueprint storage
    max_upload_size_mb: int = 10
    upload_dir: str = "./uploads"
    blueprint_bucket: str = "blueprints"
    public_base_url: str = ""

    # Exam timer
    default_exam_seconds: int = 7200
    low_time_threshold_seconds: int = 600
    timer_tick_seconds: float = 1.0

    # Live monitoring
    live_channel_enabled: bool = True
    live_keepalive_seconds: float = 30.0
    live_max_room_subscribers: int = 500

    # Authentication (plaintext, no hardening)
    student_fallback_password: Optional[str] = None
    seed_teacher_username: Optional[str] = None
    seed_teacher_password: Optional[str] = None
    seed_teacher_name: str = "Guru GTO"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
