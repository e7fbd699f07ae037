from typing import Literal

from pydantic import BaseModel


class StatusRequest(BaseModel):
    status: Literal["read", "replied"]
    """Target status of a contact submission (``new`` cannot be restored)."""
