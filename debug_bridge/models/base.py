"""
Shared pydantic base for wire/disk records.

Field names are snake_case in Python and camelCase on the wire and on disk
(`userAgent`, `createdAt`, ...), matching what the browser widget sends.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        """camelCase, JSON-safe dict with unset optionals dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
