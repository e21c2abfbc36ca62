"""
Conversion of JSON-schema style tool parameters to the Gemini schema dialect.

Gemini expects upper-case type names (``STRING``, ``OBJECT`` ...). The
conversion never mutates its input and recurses into ``properties`` and
``items``.
"""

from typing import Any, Dict, Optional

from .models import SchemaType


def to_schema_type(value: Any) -> str:
    """Map a JSON-schema type name (any case) to a SchemaType value; unknown -> ANY"""
    if isinstance(value, SchemaType):
        return value.value
    if isinstance(value, str):
        try:
            return SchemaType(value.upper()).value
        except ValueError:
            pass
    return SchemaType.ANY.value


def to_gemini_schema(schema: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return a converted copy of ``schema`` with Gemini type names"""
    if not schema:
        return None

    converted = dict(schema)
    if "type" in converted:
        converted["type"] = to_schema_type(converted["type"])

    properties = converted.get("properties")
    if isinstance(properties, dict):
        converted["properties"] = {
            name: to_gemini_schema(prop) if isinstance(prop, dict) else prop
            for name, prop in properties.items()
        }

    items = converted.get("items")
    if isinstance(items, dict):
        converted["items"] = to_gemini_schema(items)

    return converted


def to_json_schema(schema: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Inverse of ``to_gemini_schema``: lower-case type names for OpenAI style
    providers. ``ANY`` types are dropped since JSON schema has no equivalent.
    """
    if not schema:
        return {"type": "object", "properties": {}}

    converted = dict(schema)
    type_name = converted.get("type")
    if isinstance(type_name, (str, SchemaType)):
        type_value = to_schema_type(type_name)
        if type_value == SchemaType.ANY.value:
            converted.pop("type")
        else:
            converted["type"] = type_value.lower()

    properties = converted.get("properties")
    if isinstance(properties, dict):
        converted["properties"] = {
            name: to_json_schema(prop) if isinstance(prop, dict) else prop
            for name, prop in properties.items()
        }

    items = converted.get("items")
    if isinstance(items, dict):
        converted["items"] = to_json_schema(items)

    return converted
