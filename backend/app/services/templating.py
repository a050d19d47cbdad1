import re
from typing import Any, Mapping

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")

# Fields rendered as first name only, for greetings like "Hola {{nombre}}".
FIRST_NAME_FIELDS = {"nombre", "name"}


def render_placeholders(template: str, fields: Mapping[str, Any]) -> str:
    """
    Replace `{{field}}` tokens with values from `fields`.

    Missing or empty values render as an empty string.
    """
    if not template:
        return ""

    def _replace(match: re.Match) -> str:
        field = match.group(1)
        value = fields.get(field)
        if not value:
            return ""
        value = str(value)
        if field in FIRST_NAME_FIELDS:
            parts = value.split()
            return parts[0] if parts else ""
        return value

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def first_name(full_name) -> str:
    parts = str(full_name or "").split()
    return parts[0] if parts else ""
