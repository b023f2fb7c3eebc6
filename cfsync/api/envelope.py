from typing import Any, Dict


def ok(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data}


def error(message: str) -> Dict[str, Any]:
    return {"success": False, "error": message}
