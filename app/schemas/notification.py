from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List

class NotificationResponse(BaseModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    read: bool
    link_url: Optional[str]
    data: Optional[str]
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}

class MarkReadRequest(BaseModel):
    # Empty list → mark everything read
    ids: List[int] = []
