from enum import Enum
from typing import Literal, Optional

from pydantic import PrivateAttr, model_validator
from pydantic_settings import BaseSettings


class EligibilityMode(str, Enum):
    ENFORCED = "enforced"
    BYPASS_FOR_TESTING = "bypass_for_testing"


class Settings(BaseSettings):
    app_name: str = "Loan Lifecycle API"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./loan_lifecycle.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Read once when the eligibility gate is built; never consulted per request.
    eligibility_mode: EligibilityMode = EligibilityMode.ENFORCED
    reference_data_path: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    _is_sqlite: bool = PrivateAttr(default=False)
    _is_postgresql: bool = PrivateAttr(default=False)

    def model_post_init(self, __context: object) -> None:
        _scheme = self.database_url.split(":")[0].lower()
        object.__setattr__(self, "_is_sqlite", "sqlite" in _scheme)
        object.__setattr__(self, "_is_postgresql", "postgresql" in _scheme)

    @model_validator(mode="after")
    def _no_bypass_in_production(self) -> "Settings":
        if self.is_production and self.eligibility_mode is EligibilityMode.BYPASS_FOR_TESTING:
            raise ValueError("eligibility_mode=bypass_for_testing is not allowed when environment=production")
        return self

    @property
    def is_sqlite(self) -> bool:
        return self._is_sqlite

    @property
    def is_postgresql(self) -> bool:
        return self._is_postgresql

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
