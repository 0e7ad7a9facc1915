"""
Core dependencies for route protection and role checking
"""

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.database.supabase_client import get_service_supabase, get_supabase
from app.modules.auth.service import AuthService
from app.modules.users.service import UserService
from app.core.exceptions import NotFoundError
from supabase import Client
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_auth_service(
    supabase: Client = Depends(get_supabase),
    admin: Client = Depends(get_service_supabase),
) -> AuthService:
    return AuthService(supabase, admin)


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    token = credentials.credentials
    user_data = auth_service.get_current_user(token)
    return user_data


def require_role(*roles: str):
    """Factory function to create a marketplace role check dependency (role lives in user_profiles)"""
    def check_role(
        user_data: dict = Depends(get_current_user_id),
        users: UserService = Depends(get_user_service)
    ) -> dict:
        try:
            role = users.get_user_by_id(user_data["id"]).role
        except NotFoundError:
            role = None
        if role not in roles:
            logger.info(f"User {user_data['id']} with role {role} denied, requires one of {roles}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied."
            )
        return user_data
    return check_role
