'''
This file contains common security-related utilities, such as secret hashing,
that are decoupled from other services to prevent circular imports.
'''
from passlib.context import CryptContext

# --- One-time Code Hashing ---
class HashedSecret:
    pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
    @classmethod
    def verify(cls, plain_secret: str, hashed_secret: str) -> bool:
        return cls.pwd_context.verify(plain_secret, hashed_secret)

    @classmethod
    def get_hash(cls, secret: str) -> str:
        return cls.pwd_context.hash(secret)
