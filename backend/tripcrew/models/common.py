"""
Response envelope shared by every endpoint
"""

from typing import Any

from pydantic import BaseModel, Field


class APIResponse(BaseModel):
    """
    {code, msg, data}. code is 0 on success and the HTTP status on a domain
    error, in which case data carries the error kind.
    """

    code: int = Field(default=0, description="0 on success, HTTP status on error")
    msg: str = Field(default="ok")
    data: Any | None = Field(default=None)

    @classmethod
    def failure(cls, status_code: int, detail: str, kind: str) -> "APIResponse":
        return cls(code=status_code, msg=detail, data={"kind": kind})

    class Config:
        json_schema_extra = {
            "examples": [
                {"code": 0, "msg": "ok", "data": {"trip_id": "665f1c0e9b1e8a3d2c4b5a69"}},
                {"code": 409, "msg": "Join request already exists", "data": {"kind": "conflict"}},
            ]
        }
