"""
Model base class for dialogue data.

Dialogue content (graphs, nodes, choices, conditions, actions) and
runtime snapshots (history, serialized state) are plain data. They
carry no traversal logic; that lives in the runner and its helpers.

Usage:
    class Speaker(Model):
        name: str
        portrait: str | None = None
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """
    Base class for all dialogue data models.

    Uses Pydantic for:
    - Validation of host-authored content
    - JSON (de)serialization with camelCase wire aliases
    - Default values
    """

    model_config = ConfigDict(
        # Wire format uses camelCase aliases, Python code uses field names
        populate_by_name=True,
        # Validate on assignment
        validate_assignment=True,
        # Typos in content should fail loudly
        extra='forbid',
    )

    def clone(self) -> Model:
        """Create a deep copy of this model."""
        return self.model_copy(deep=True)

    def to_wire(self) -> dict:
        """Dump to plain JSON-compatible data using wire aliases."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
