"""Uniform response envelopes for success and error payloads."""

from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(data: Any = None, message: str = "Success", status_code: int = 200) -> JSONResponse:
    body = {
        "statusCode": status_code,
        "data": {} if data is None else data,
        "message": message,
        "success": status_code < 400,
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def error_body(status_code: int, message: str, errors: Optional[List[Any]] = None) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "message": message,
        "success": False,
        "errors": jsonable_encoder(list(errors or [])),
    }
