from typing import Any, Self

from pydantic import BaseModel, ConfigDict


class ProtocolModel(BaseModel):
    """Base for every model that crosses the wire.

    Fields use snake_case in Python and camelCase aliases on the wire. Both
    names are accepted when parsing.
    """

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_protocol(cls, data: dict[str, Any]) -> Self:
        """Convert from protocol-level representation."""
        return cls.model_validate(data)

    def to_protocol(self) -> dict[str, Any]:
        """Convert to protocol-level representation."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
