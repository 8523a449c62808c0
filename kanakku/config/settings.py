"""
Configuration Management for Kanakku

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every tunable (storage location, cipher key, password policy, backup
naming) is visible in one place and validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local storage configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="KANAKKU_STORAGE_",
        extra="ignore"
    )
    
    data_dir: Path = Field(
        default=Path.home() / ".kanakku",
        description="Directory holding the persistent storage file"
    )
    persistent_file: str = Field(
        default="storage.json",
        description="File name of the persistent slot store"
    )
    write_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a failed slot write is retried"
    )
    
    @property
    def persistent_path(self) -> Path:
        """Full path of the persistent slot file."""
        return self.data_dir / self.persistent_file


class SecuritySettings(BaseSettings):
    """
    Cipher and password policy configuration.
    
    NOTE: The secret key is shared by every installation. It obscures
    stored data against casual inspection; it is not a security boundary.
    """
    
    model_config = SettingsConfigDict(
        env_prefix="KANAKKU_SECURITY_",
        extra="ignore"
    )
    
    secret_key: str = Field(
        default="kanakku_offline_secret_key",
        min_length=1,
        description="Default XOR key for stored profiles and backups"
    )
    password_min_length: int = Field(
        default=8,
        ge=4,
        le=128,
        description="Minimum password length"
    )
    password_symbols: str = Field(
        default="$!@#_&",
        min_length=1,
        description="Symbols of which a password must contain at least one"
    )


class BackupSettings(BaseSettings):
    """Backup and export file configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="KANAKKU_BACKUP_",
        extra="ignore"
    )
    
    format_version: str = Field(
        default="1.0",
        description="Version written into backup metadata"
    )
    file_extension: str = Field(
        default=".kbf",
        description="Extension of backup files"
    )
    filename_prefix: str = Field(
        default="kanakku_backup",
        description="Prefix of backup file names"
    )
    export_prefix: str = Field(
        default="kanakku_export",
        description="Prefix of CSV export file names"
    )
    
    @field_validator('file_extension')
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Extensions always carry a leading dot."""
        v = v.strip()
        return v if v.startswith(".") else f".{v}"


class AppSettings(BaseSettings):
    """
    Main application settings.
    
    Loads configuration from environment variables and .env file.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level written to the structured log"
    )
    
    # Profile defaults applied at onboarding
    default_currency: str = Field(
        default="₹",
        description="Currency symbol for new profiles"
    )
    default_language: str = Field(
        default="en",
        description="Language code for new profiles"
    )
    default_profile_name: str = Field(
        default="User",
        description="Name used when onboarding supplies none"
    )
    
    # Audit trail
    audit_max_events: int = Field(
        default=500,
        ge=10,
        le=100000,
        description="How many audit events the local audit slot keeps"
    )


class Settings(BaseSettings):
    """
    Root settings container.
    
    Aggregates all sub-settings for easy access.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()
    
    @property
    def security(self) -> SecuritySettings:
        return SecuritySettings()
    
    @property
    def backup(self) -> BackupSettings:
        return BackupSettings()
    
    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).
    
    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.
    
    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}
    
    settings = get_settings()
    
    for name in ("storage", "security", "backup", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
    
    return results
