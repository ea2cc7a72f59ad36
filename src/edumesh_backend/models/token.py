'''
JWT pair and claim models.
'''
from pydantic import BaseModel
from datetime import datetime
from uuid import UUID

from ..database.db_enums import UserRole

class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int # seconds until the access token expires

class TokenPayload(BaseModel):
    sub: UUID # the user's id
    school_id: UUID
    role: UserRole
    type: str # "access" or "refresh"
    exp: datetime
