"""Contact reference model (contact management itself lives elsewhere)."""

from pydantic import BaseModel, ConfigDict, Field

from finance_engine.models.common import new_id


class Contact(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
