from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from obfuscation import ObfuscationKeys

# ============================================================================
# CONFIGURATION CLASS
# ============================================================================

class Settings(BaseSettings):
    """Centralized configuration with validation"""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    base_url: str = "http://localhost:8000"

    # Obfuscation keys. Rotating either one invalidates every token of that kind.
    obfuscate_ids_cipher_key: str = Field(..., min_length=16)
    obfuscate_ids_numeric_cipher_key: str = Field(..., min_length=6)
    hashids_min_length: int = Field(default=8, ge=0, le=32)

    # Rate limiting
    rate_limit_list: str = "60/minute"
    rate_limit_show: str = "120/minute"

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    cors_origins: list[str] = ["*"]

    def validate_startup(self) -> None:
        """Validate configuration on startup"""
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError("BASE_URL must include http:// or https://")
        if self.obfuscate_ids_cipher_key == self.obfuscate_ids_numeric_cipher_key:
            raise ValueError("The general and numeric obfuscation keys must differ")

    def obfuscation_keys(self) -> ObfuscationKeys:
        return ObfuscationKeys(
            general_key=self.obfuscate_ids_cipher_key,
            numeric_key=self.obfuscate_ids_numeric_cipher_key,
            min_length=self.hashids_min_length,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
