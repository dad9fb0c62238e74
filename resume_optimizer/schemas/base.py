"""
Shared pydantic plumbing for payloads produced by the generation capability.

Everything the model returns is untrusted: lists arrive as strings, strings
arrive as null, objects arrive where strings were asked for. These coercers
normalize the shape so consumers only ever check content, never structure.
"""
from typing import Any, List

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys while exposing snake_case attributes."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        return ", ".join(as_text(v) for v in value.values() if as_text(v))
    if isinstance(value, (list, tuple)):
        return ", ".join(as_text(v) for v in value if as_text(v))
    return str(value)


def as_text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, dict):
        value = list(value.values())
    if not isinstance(value, (list, tuple)):
        return [str(value)]
    items = []
    for item in value:
        if isinstance(item, dict):
            text = " - ".join(as_text(v) for v in item.values() if as_text(v))
        else:
            text = as_text(item)
        if text:
            items.append(text)
    return items


def as_object_list(value: Any) -> List[dict]:
    """Keep only dict entries; anything else is noise from the generator."""
    if isinstance(value, dict):
        return [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, dict)]
