"""Canonical JSON type aliases.

Use ``JSONValue`` / ``JSONObject`` for content payloads and item fields,
whose shape is owned by the admin pages rather than by this service.

Do not use them in Pydantic ``BaseModel`` fields: Pydantic v2 cannot resolve
the recursive forward references. Wire models use ``dict[str, Any]``.
"""
from __future__ import annotations

JSONScalar = str | int | float | bool | None

JSONValue = str | int | float | bool | None | list["JSONValue"] | dict[str, "JSONValue"]

JSONObject = dict[str, JSONValue]
