from .config import get_config
from .policy_engine.permissions import ACTIONS, SCOPES

__all__ = [
    "POLICY",
]


def _make_schema_id(name: str) -> str:
    return f"{get_config().service_url_base_path.rstrip('/')}/schemas/{name}.json"


POLICY = {
    "$id": _make_schema_id("policy"),
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Policy",
    "description": "Role-based grants: each role maps to a set of <action>:<scope>:<resource> permissions.",
    "type": "object",
    "properties": {
        "roles": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    # Permissions granted directly to this role
                    "grants": {
                        "type": "array",
                        "items": {
                            "type": "string",
                            "pattern": f"^({'|'.join(ACTIONS)}):({'|'.join(SCOPES)}):[A-Za-z0-9_-]+$",
                        },
                        "uniqueItems": True,
                    },
                    # Other roles whose grants this role inherits
                    "extends": {
                        "type": "array",
                        "items": {"type": "string"},
                        "uniqueItems": True,
                    },
                },
                "additionalProperties": False,
            },
        },
    },
    "required": ["roles"],
    "additionalProperties": False,
}
