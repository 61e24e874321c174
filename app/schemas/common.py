# app/schemas/common.py
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    detail: str = Field(description="Error message")
    code: str | None = Field(
        default=None,
        description="Access error kind (missing_location, out_of_area, ...) when applicable",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "detail": "Location coordinates (latitude, longitude) are required "
                    "for security and privacy",
                    "code": "missing_location",
                }
            ]
        }
    }


class OkResponse(BaseModel):
    ok: bool = Field(description="Always true when healthy")

    model_config = {"json_schema_extra": {"examples": [{"ok": True}]}}
