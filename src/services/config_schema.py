from typing import Any, Dict

from pydantic import BaseModel, Field, HttpUrl


class ApiConfig(BaseModel):
    """Channel API endpoint and request execution settings."""

    base_url: HttpUrl = Field(
        default="https://device-api.urbanairship.com", validate_default=True
    )
    app_key: str = ""
    app_secret: str = ""
    timeout: float = Field(default=10, gt=0)
    retry_count: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=5, ge=0)
    max_workers: int = Field(default=4, ge=1)


class FullConfig(BaseModel):
    api: ApiConfig = ApiConfig()
    # Channel attributes applied under command line options
    payload_defaults: Dict[str, Any] = {}
