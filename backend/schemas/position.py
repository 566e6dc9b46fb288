"""Pydantic schemas for reconciled option positions."""

from datetime import date
from pydantic import BaseModel, Field


class OpenPositionRead(BaseModel):
    contract_id: str
    net_quantity: int
    opened_on: date | None = None
    last_activity: date | None = None

    model_config = {"from_attributes": True}


class AnomalyRead(BaseModel):
    kind: str  # "UnmatchedClose", "OverClose", "UnknownAction"
    contract_id: str
    date: date
    action: str
    index: int
    source_id: int | None = None
    message: str

    model_config = {"from_attributes": True}


class PositionReport(BaseModel):
    underlying: str
    as_of: date | None = None
    positions: list[OpenPositionRead] = Field(default_factory=list)
    anomalies: list[AnomalyRead] = Field(default_factory=list)
    lapsed: list[OpenPositionRead] = Field(default_factory=list)
