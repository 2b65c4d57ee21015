"""Schemas para endpoints de health."""
from pydantic import BaseModel


class HealthOut(BaseModel):
    ok: bool
    store: str
