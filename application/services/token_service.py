"""
令牌服务 - 校验买家访问令牌（JWT）

令牌由上游身份服务签发，本服务只做校验；`create_access_token` 供运维脚本与测试使用。
"""
from typing import Optional
from datetime import datetime, timedelta, timezone
from dataclasses import dataclass
import jwt
import uuid

from core.config import settings
from core.exceptions import TokenExpiredException
from core.logging_config import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    is_superuser: bool = False
    email: Optional[str] = None


class TokenService:
    def __init__(self, secret_key: Optional[str] = None, algorithm: Optional[str] = None):
        self._secret_key = secret_key or settings.SECRET_KEY
        self._algorithm = algorithm or settings.ALGORITHM

    def create_access_token(
        self,
        user_id: int,
        *,
        is_superuser: bool = False,
        email: Optional[str] = None,
        expires_minutes: Optional[int] = None,
    ) -> str:
        """创建访问令牌"""
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
        to_encode = {
            "sub": str(user_id),
            "is_superuser": is_superuser,
            "exp": expire,
            "type": "access",
            "jti": str(uuid.uuid4()),
        }
        if email:
            to_encode["email"] = email
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def verify_access_token(self, token: str) -> Optional[TokenClaims]:
        """Verify an access JWT.

        - Expired token: raise TokenExpiredException
        - Invalid token, wrong type or missing subject: return None
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenExpiredException()
        except jwt.InvalidTokenError as exc:
            logger.info("access_token_invalid", error=str(exc))
            return None

        if payload.get("type") != "access":
            return None
        sub = payload.get("sub")
        try:
            user_id = int(sub)
        except (TypeError, ValueError):
            return None
        return TokenClaims(
            user_id=user_id,
            is_superuser=bool(payload.get("is_superuser", False)),
            email=payload.get("email"),
        )
