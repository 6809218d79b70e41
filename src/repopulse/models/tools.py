from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class FullRepositoryInput(BaseModel):
    owner: str = Field(min_length=1, max_length=39, pattern=r"^[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?$")
    name: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9._-]+$")

    @field_validator("owner", "name", mode="before")
    @classmethod
    def strip_whitespace(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("name")
    @classmethod
    def reject_dot_segments(cls, value: str) -> str:
        if value in (".", ".."):
            raise ValueError("repository name cannot be '.' or '..'")
        return value
