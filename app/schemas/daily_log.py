from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional

class DailyLogResponse(BaseModel):
    id: int
    user_id: int
    date: date
    start_time: Optional[str]
    end_time: Optional[str]
    description: str
    category: str
    completed: bool
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}
