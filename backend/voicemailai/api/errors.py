from fastapi.responses import JSONResponse


def error_response(message: str, /, status_code: int = 500, **extra) -> JSONResponse:
    content = {"error": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)
