"""
User-related Pydantic models.
"""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Literal, Optional, Union


class User(BaseModel):
    """Signed-in user as returned by the identity endpoints.

    The backend is inconsistent about casing, so both camelCase and
    snake_case field names are accepted. Dumps use camelCase.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Union[int, str]
    email: str
    first_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("firstName", "first_name"),
        serialization_alias="firstName",
    )
    last_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("lastName", "last_name"),
        serialization_alias="lastName",
    )
    role: Literal["user", "admin"] = "user"
    is_active: bool = Field(
        default=True,
        validation_alias=AliasChoices("isActive", "is_active"),
        serialization_alias="isActive",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else self.email
