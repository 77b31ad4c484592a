from __future__ import annotations

from typing import Any


def list_response(items: list[Any], total: int) -> dict[str, Any]:
    return {"data": items, "total": total}
