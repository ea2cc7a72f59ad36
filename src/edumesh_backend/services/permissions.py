'''
Role gate shared by every service.
'''
from ..common.exceptions import UnauthorizedError
from ..common.logger import log
from ..database import models as db_models
from ..database.db_enums import UserRole


def authorize_roles(current_user: db_models.Users, allowed_roles: list[UserRole]):
    """Raises 403 unless the caller's role is one of `allowed_roles`."""
    allowed_role_values = [role.value for role in allowed_roles]
    if current_user.role not in allowed_role_values:
        log.warning(f"Unauthorized action by user {current_user.id} (Role: {current_user.role}). Required one of: {allowed_role_values}")
        raise UnauthorizedError()
