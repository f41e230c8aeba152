from pydantic_settings import BaseSettings
from typing import List
from pydantic import model_validator

SCHEDULING_MODES = {"dependency", "positional"}
KNOWN_FLOWS = {"OMS", "JEI", "FRM"}


class Settings(BaseSettings):
    APP_NAME: str = "SKULOC Reserve"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    RESERVE_STRICT_MODE: bool = False
    RESERVE_SCHEDULING: str = "dependency"
    RESERVE_DEFAULT_FLOW: str = "OMS"
    RESERVE_FLOWS: str = "OMS,JEI,FRM"
    RESERVE_DIVISION: int = 30
    RESERVE_TRACE_EVENTS: bool = False

    @property
    def reserve_flows_list(self) -> List[str]:
        return [f.strip().upper() for f in self.RESERVE_FLOWS.split(",") if f.strip()]

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in {"prod", "production"}

    @model_validator(mode="after")
    def validate_reserve_settings(self):
        self.RESERVE_SCHEDULING = self.RESERVE_SCHEDULING.lower()
        self.RESERVE_DEFAULT_FLOW = self.RESERVE_DEFAULT_FLOW.upper()

        if self.RESERVE_SCHEDULING not in SCHEDULING_MODES:
            raise ValueError(f"RESERVE_SCHEDULING must be one of {sorted(SCHEDULING_MODES)}.")

        flows = self.reserve_flows_list
        if not flows:
            raise ValueError("RESERVE_FLOWS must name at least one flow.")
        unknown = [f for f in flows if f not in KNOWN_FLOWS]
        if unknown:
            raise ValueError(f"Unknown flows in RESERVE_FLOWS: {', '.join(unknown)}.")

        if self.RESERVE_DEFAULT_FLOW not in flows:
            raise ValueError("RESERVE_DEFAULT_FLOW must be one of RESERVE_FLOWS.")

        if self.is_production and self.RESERVE_SCHEDULING == "positional":
            raise ValueError("Positional scheduling is not allowed when ENVIRONMENT is production.")

        return self


settings = Settings()
