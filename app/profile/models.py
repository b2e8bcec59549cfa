from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator

ArrayInput = list[Any] | str

TEXT_FIELDS = (
    "name",
    "bio",
    "phone",
    "location",
    "preferred_contact",
    "company_type",
    "budget_range",
    "working_style",
    "availability",
)


class ProfileUpdate(BaseModel):
    """Body of ``PUT /api/auth/me``. Every field is optional; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, min_length=1)
    bio: str | None = None
    phone: str | None = None
    location: str | None = None
    preferred_contact: str | None = None
    company_type: str | None = None
    years_experience: int | None = None
    project_types: ArrayInput | None = None
    preferred_cities: ArrayInput | None = None
    budget_range: str | None = None
    working_style: str | None = None
    availability: str | None = None
    specializations: ArrayInput | None = None
    languages: ArrayInput | None = None
    setup_completed: StrictBool | None = None

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def stringify_numbers(cls, v: Any) -> Any:
        if isinstance(v, bool):
            return v
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("years_experience", mode="before")
    @classmethod
    def coerce_years_experience(cls, v: Any) -> Any:
        if v is None:
            return v
        if isinstance(v, bool):
            raise ValueError("years_experience must be a number")
        if isinstance(v, int):
            return v
        if isinstance(v, float) and v.is_integer():
            return int(v)
        if isinstance(v, str) and v.isascii() and v.isdigit():
            return int(v)
        raise ValueError("years_experience must be a whole number")

    def profile_fields(self) -> dict[str, Any]:
        """Fields the client actually sent, minus the force flag."""
        data = self.model_dump(exclude_unset=True)
        data.pop("setup_completed", None)
        return data

    @property
    def force_complete(self) -> bool:
        return self.setup_completed is True


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str | None = None
    role: str
    bio: str | None = None
    phone: str | None = None
    location: str | None = None
    preferred_contact: str | None = None
    company_type: str | None = None
    years_experience: int | None = None
    project_types: str | None = None
    preferred_cities: str | None = None
    languages: str | None = None
    budget_range: str | None = None
    working_style: str | None = None
    availability: str | None = None
    specializations: str | None = None
    email_verified: bool = False
    setup_completed: bool = False
