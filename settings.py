from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATA_DIR: Path = Path("data")
    COMPANIES_DIR: Optional[Path] = None
    EMPLOYEES_DIR: Optional[Path] = None
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    @property
    def companies_dir(self) -> Path:
        return self.COMPANIES_DIR or self.DATA_DIR / "companies"

    @property
    def employees_dir(self) -> Path:
        return self.EMPLOYEES_DIR or self.DATA_DIR / "employees"


settings = Settings()
