import json
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from services.shiprocket.client import DEFAULT_API_URL
from services.shiprocket.schemas import PackageDimensions

# --- Optional JSON overrides from the /config directory ---

def json_config_settings_source() -> Dict[str, Any]:
    """
    Loads config/shiprocket.json when present. Keys are setting names, e.g.
    {"SHIPROCKET_DEFAULT_PICKUP_LOCATION": "Warehouse_BLR", "SHIPROCKET_PACKAGE": {"weight": 1.2}}
    """
    config_dir = Path(__file__).parent / 'config'
    config: Dict[str, Any] = {}

    filepath = config_dir / 'shiprocket.json'
    if filepath.exists():
        with open(filepath, 'r', encoding='utf-8') as f:
            config.update(json.load(f))

    return config


# --- Main settings class ---

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./shipments.db"
    LOG_LEVEL: str = "INFO"

    # Shiprocket account (never logged)
    SHIPROCKET_EMAIL: Optional[str] = None
    SHIPROCKET_PASSWORD: Optional[str] = None
    SHIPROCKET_API_URL: str = DEFAULT_API_URL
    SHIPROCKET_WEBHOOK_SECRET: Optional[str] = None
    SHIPROCKET_ENABLED: bool = True
    SHIPROCKET_TIMEOUT_SECONDS: float = 10.0

    # Shipment defaults
    SHIPROCKET_DEFAULT_PICKUP_LOCATION: str = "Primary"
    SHIPROCKET_DEFAULT_STATE: str = "Karnataka"
    SHIPROCKET_DEFAULT_COUNTRY: str = "India"
    SHIPROCKET_PACKAGE: PackageDimensions = PackageDimensions()

    # Courier assignment
    AUTO_ASSIGN_DELAY_SECONDS: float = 3.0
    AWB_VERIFY_ATTEMPTS: int = 5
    AWB_VERIFY_DELAY_SECONDS: float = 3.0
    COURIER_PREFER_RECOMMENDED: bool = False
    AWB_SWEEP_INTERVAL_MINUTES: int = 0  # 0 turns the periodic sweep off

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # .env wins over the process environment, JSON comes last
        return (
            init_settings,
            dotenv_settings,
            env_settings,
            json_config_settings_source,
            file_secret_settings,
        )

settings = Settings()
