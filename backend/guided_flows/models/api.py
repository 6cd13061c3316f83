# /guided_flows/models/api.py

from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, Field

# Request and response bodies for the HTTP API.


class FlowInputRequest(BaseModel):
    input: Optional[str] = Field(default=None, max_length=4096, description="Free text, a quick reply value, or a reserved token")


class APIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str
