from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Optional
from campusmart.core.database import get_db
from campusmart.core.security import decode_user_id
from campusmart.models.user import User
from campusmart.websockets.registry import ConnectionRegistry

# Определяем схему безопасности
security = HTTPBearer(auto_error=False)

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """
    Dependency для получения текущего пользователя из JWT токена.
    Возвращает None если токен не предоставлен или невалиден (для опциональной авторизации).
    """
    if not credentials:
        return None
    
    user_id = decode_user_id(credentials.credentials)
    if user_id is None:
        return None
    
    # Получаем пользователя из БД
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    
    if user is None or not user.is_active:
        return None
    
    return user

async def require_auth(
    current_user: Optional[User] = Depends(get_current_user)
) -> User:
    """
    Dependency для эндпоинтов, которые обязательно требуют авторизации.
    """
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Требуется авторизация",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user

def get_registry(request: Request) -> ConnectionRegistry:
    """Реестр живых сессий текущего приложения."""
    return request.app.state.registry
