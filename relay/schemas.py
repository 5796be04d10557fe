# relay/schemas.py
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")


class RequestDescription(BaseModel):
    """An outbound request as submitted to POST /proxy."""

    # url is validated by the relay engine so that a missing or non-http URL
    # gets the same 400 as an unsafe one
    url: Optional[str] = None
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None
    params: Optional[Dict[str, Any]] = None

    @field_validator("method", mode="before")
    @classmethod
    def method_must_be_known(cls, v):
        if v is None:
            return "GET"
        if not isinstance(v, str):
            raise ValueError("method must be a string")
        v = v.strip().upper()
        if v not in HTTP_METHODS:
            raise ValueError(f"unsupported method {v}")
        return v

    @field_validator("headers", mode="before")
    @classmethod
    def header_values_to_str(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("headers must be an object")
        headers = {str(k): "" if val is None else str(val) for k, val in v.items()}
        # HTTP/1.1 header fields go out ASCII-encoded
        for key, val in headers.items():
            if not (key.isascii() and val.isascii()):
                raise ValueError(f"header {key!r} must be ASCII")
        return headers


class RelayOutcome(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: int
    status_text: str = Field(default="", alias="statusText")
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None
    time: int

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class CollectionCreate(BaseModel):
    name: str


class CollectionItemCreate(BaseModel):
    request: Dict[str, Any]


class EnvironmentCreate(BaseModel):
    name: str
    variables: Dict[str, Any] = Field(default_factory=dict)
