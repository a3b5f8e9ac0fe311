import secrets

from fastapi import Header, HTTPException, Request


def verify_api_key(request: Request, x_api_key: str = Header(...)) -> str:
    """Validates API key from X-API-Key header."""
    settings = getattr(request.app.state, "settings", None)
    expected = settings.api.key if settings is not None else ""

    if not expected:
        raise HTTPException(status_code=500, detail="API key not configured")

    if not secrets.compare_digest(x_api_key.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid API key")

    return x_api_key
