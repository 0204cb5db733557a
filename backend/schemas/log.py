# backend/schemas/log.py
from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict


class LogResponse(BaseModel):
    id: int
    actor: Optional[str] = None
    action: str
    resource: str
    status: str
    ts: datetime
    meta: Optional[Any] = None

    model_config = ConfigDict(from_attributes=True)


class LogPage(BaseModel):
    items: List[LogResponse]
    total: int
    page: int
    page_size: int
