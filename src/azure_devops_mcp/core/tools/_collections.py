"""
Shared helpers for working with Azure DevOps list responses.
"""

from typing import Any, Dict, List


def value_elements(payload: Any) -> List[Dict[str, Any]]:
    """
    Extract the items of a {"count": n, "value": [...]} envelope.
    Bare lists are accepted as-is. Raises ValueError on any other shape.
    """
    if isinstance(payload, list):
        elements = payload
    elif isinstance(payload, dict):
        elements = payload.get("value", [])
    else:
        raise ValueError("Expected a list response or a 'value' envelope.")
    if not isinstance(elements, list):
        raise ValueError("Expected 'value' to be a list.")
    return [e for e in elements if isinstance(e, dict)]
