from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(_PROJECT_ROOT / ".env"), env_prefix="GROUND_")

    app_name: str = "Ground"
    environment: str = "prod"

    # Server
    host: str = "0.0.0.0"
    port: int = 3478
    log_level: str = "info"
    trusted_hosts: str = ""

    # Host layout
    home_root: str = "/home"
    trash_home_path: str = ".local/share/ground/trash"
    sudoers_path: str = "/etc/sudoers"
    admin_group_candidates: str = "sudo,wheel"
    # New and reset accounts get this password; users are expected to change it.
    default_password: str = "password"

    # Session settings
    session_ttl_hours: int = 12

    # Login rate limiting (per remote address, sliding window)
    login_rate_limit_attempts: int = 10
    login_rate_limit_window_seconds: int = 3600

    csrf_protection_enabled: bool = True


settings = Settings()
