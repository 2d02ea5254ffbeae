from pydantic import BaseModel, Field
from typing import Literal


class PolicyConfig(BaseModel):
    path: str = "policies.yaml"


class StoreConfig(BaseModel):
    provider: Literal["sqlite", "memory"] = "sqlite"
    path: str = ".castellan/authz.db"
    timeout: float = Field(default=5.0, gt=0)


class CastellanConfig(BaseModel):
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    tenants: list[str] = Field(default_factory=list)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
