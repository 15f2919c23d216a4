from fastapi.responses import JSONResponse


def error_response(status_code: int, message: str) -> JSONResponse:
    """Every failure leaves a route as ``{"error": "..."}``."""
    return JSONResponse({"error": message}, status_code=status_code)
