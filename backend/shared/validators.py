"""Validation helpers shared by the server settings."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def parse_cors_origins(value: str | list[str]) -> list[str]:
    """Parse CORS origins from an environment variable or config value.

    Accepts a list of strings, a JSON array string ('["a","b"]') or a
    comma-separated string ('a,b'). Empty input is rejected.
    """
    if isinstance(value, list):
        origins = value
    else:
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                origins = json.loads(stripped)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON array: {e}") from e
            if not isinstance(origins, list) or not all(isinstance(item, str) for item in origins):
                raise ValueError("JSON value must be an array of strings")
        else:
            origins = [origin.strip() for origin in stripped.split(",") if origin.strip()]

    if not origins:
        raise ValueError("cors_origins must not be empty")
    return origins


class CorsEnvSettingsSource(EnvSettingsSource):
    """Env source that hands cors_origins to its validator as a raw string.

    pydantic-settings JSON-decodes list fields before validators run, which
    would reject the comma-separated form.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name == "cors_origins" and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
