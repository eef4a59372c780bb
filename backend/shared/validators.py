"""Settings helpers for list-valued environment variables."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Parse a list of strings given as a list, a JSON array or comma-separated text.

    Items are stripped and duplicates dropped, keeping first-seen order. A blank
    string is always rejected; an empty result only when allow_empty is False.
    """
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValueError("String list value must not be empty")
        items = _json_items(stripped) if stripped.startswith("[") else stripped.split(",")
    else:
        items = value

    result = list(dict.fromkeys(item.strip() for item in items if item.strip()))
    if not result and not allow_empty:
        raise ValueError("String list value must not be empty")
    return result


def _json_items(text: str) -> list[str]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON array: {e}") from e
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        raise ValueError("JSON value must be an array of strings")
    return parsed


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env source that hands the settings class's `string_list_fields` to validators as raw text.

    pydantic-settings would otherwise JSON-decode every list-typed env var
    before validation, which rejects the comma-separated form.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in getattr(self.settings_cls, "string_list_fields", ()) and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
