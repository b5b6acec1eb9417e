import logging
import secrets
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from app.config.setting import settings
from app.domains.auth.middleware import jwt_auth

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    id: str
    password: str


def credentials_match(login_id: str, password: str) -> bool:
    if not settings.login_id or not settings.login_password:
        logger.warning("LOGIN_ID / LOGIN_PASSWORD are not configured; rejecting login")
        return False
    id_ok = secrets.compare_digest(login_id.encode(), settings.login_id.encode())
    password_ok = secrets.compare_digest(password.encode(), settings.login_password.encode())
    return id_ok and password_ok


@router.post("/login")
async def login(request_data: LoginRequest):
    if not credentials_match(request_data.id, request_data.password):
        logger.warning("Unauthorized access attempt")
        return JSONResponse(status_code=401, content={"success": False, "message": "Invalid credentials"})

    token = jwt_auth.jwt_service.create_access_token(request_data.id)
    return {"success": True, "token": token}
