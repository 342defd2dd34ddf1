# happy_tree/schemas.py
import os
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Backend = Literal["thread", "process"]


class NodeRecord(BaseModel):
    id: int = Field(ge=0)
    dst: int = Field(ge=0)
    srcs: List[int] = []


class RenderSettings(BaseModel):
    width: int = Field(ge=1, default=1000)
    height: int = Field(ge=1, default=1000)
    start_level: int = Field(ge=0, default=1)
    workers: Optional[int] = Field(ge=1, default=None)
    backend: Backend = "thread"
    background: int = Field(ge=0, le=0xFFFFFF, default=0xFFFFFF)

    def resolved_workers(self) -> int:
        return int(self.workers or os.cpu_count() or 1)
