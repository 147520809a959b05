from typing import Optional
from pydantic import BaseModel


class Actor(BaseModel):
    """What the identity collaborator tells the core about the caller."""

    company_id: str
    driver_id: Optional[str] = None
    is_confirming_driver: bool = False
