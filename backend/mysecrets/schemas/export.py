# mysecrets/schemas/export.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ExportRowOut(BaseModel):
    website_url: str
    username: str
    # Still encrypted; exporters never see plaintext.
    encrypted_password: str
    notes: Optional[str] = None
    category: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ExportOut(BaseModel):
    exported_at: datetime
    count: int
    rows: List[ExportRowOut]
