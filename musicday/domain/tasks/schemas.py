"""Task domain schemas - Pydantic models for validation"""

from typing import Any, Optional

from pydantic import BaseModel


class TaskComplete(BaseModel):
    """completion_data holds amount / invoice_url / notes depending on the task"""

    completion_data: dict[str, Any] = {}


class TaskCancel(BaseModel):
    reason: Optional[str] = None
