"""Strict schema baselines with forbidden extras by default."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Neutral strict base for response DTOs and internal events."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """Request DTO base that forbids unexpected fields and accepts field names or aliases."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, populate_by_name=True)


class ProcessorPayloadModel(BaseModel):
    """Lenient base for third-party payloads; unknown processor fields are dropped."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)
