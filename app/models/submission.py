from typing import Literal, Optional

from pydantic import AliasChoices, Field

from app.models.base import Entity

SubmissionStatus = Literal["new", "read", "replied"]

# Status transitions an admin may trigger on a submission.
ALLOWED_TRANSITIONS = {
    "new": {"read", "replied"},
    "read": {"replied"},
    "replied": set(),
}


class ContactSubmission(Entity):
    """A message left through the public contact form."""

    first_name: str = Field(default="", validation_alias=AliasChoices("first_name", "firstName"))
    last_name: str = Field(default="", validation_alias=AliasChoices("last_name", "lastName"))
    email: str = ""
    message: str = ""
    status: SubmissionStatus = "new"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
