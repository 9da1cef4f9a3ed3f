from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration settings.
    """
    model_config = SettingsConfigDict(env_prefix="PROFILER_", env_file=".env", extra="ignore")

    # Service Info
    service_name: str = "request-profiler"
    log_level: str = "INFO"

    # Profiler
    enabled: bool = True
    dsn: str = "file:var/profiler"
    lifetime: int = 2 * 24 * 3600  # seconds; 0 keeps profiles forever
    only_exceptions: bool = False
    only_main_requests: bool = False
    collect_parameter: Optional[str] = None
    trusted_proxies: List[str] = []
    excluded_paths: List[str] = ["/_profiler", "/health"]

    # Paths
    collectors_file: Optional[str] = None


settings = Settings()
