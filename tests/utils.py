import json
from httpx import Response
from pydantic import BaseModel

__all__ = ["compare_via_json", "compare_model_json", "error_messages"]


def compare_via_json(x: dict | list, y: dict | list) -> bool:
    return json.dumps(x, sort_keys=True) == json.dumps(y, sort_keys=True)


def compare_model_json(x: BaseModel, y: BaseModel, **kwargs) -> bool:
    return compare_via_json(x.model_dump(mode="json", **kwargs), y.model_dump(mode="json", **kwargs))


def error_messages(res: Response) -> list[str]:
    data = res.json()
    assert data["code"] == res.status_code
    return [e["message"] for e in data.get("errors", [])]
