"""Shared pydantic base for crashmap models."""

from typing import Any

from pydantic import BaseModel, ConfigDict


class CrashmapBaseModel(BaseModel):
    """Base class for models read from or written to YAML/JSON files.

    Serialization always goes through field aliases, so a model written with
    ``to_dict`` validates again unchanged.
    """

    model_config = ConfigDict(
        # Build descriptions are hand written; reject typos instead of ignoring them
        extra="forbid",
        str_strip_whitespace=True,
        use_enum_values=True,
        validate_assignment=True,
        populate_by_name=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible dict of every field, keyed by alias."""
        return self.model_dump(by_alias=True, mode="json")
