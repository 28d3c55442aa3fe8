from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel

ActivityType = Literal["submission", "approval", "rejection", "user"]


class ActivityItem(BaseModel):
    id: str
    type: ActivityType
    message: str
    timestamp: datetime
    time: str                   # relative, e.g. "5 minutes ago"
    user: Optional[str] = None  # agent e-mail
