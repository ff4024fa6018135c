# followup/services/templates.py
from typing import Any


def format_message(template: str, **variables: Any) -> str:
    """Substitute ``{name}`` placeholders; unknown or unset ones are left as is."""
    message = template
    for name, value in variables.items():
        if value is None:
            continue
        message = message.replace("{" + name + "}", str(value))
    return message
