from typing import Any, Optional

from fastapi.responses import JSONResponse


def success(data: Any = None, message: Optional[str] = None) -> dict:
    body = {"status": "success", "data": data}
    if message:
        body["message"] = message
    return body


def pending(email: str, name: str, message: str = "Your login request is awaiting approval") -> JSONResponse:
    """202: the caller is known but may not have a token yet."""
    return JSONResponse(
        status_code=202,
        content={
            "status": "pending",
            "message": message,
            "data": {"requires_approval": True, "email": email, "name": name},
        },
    )
