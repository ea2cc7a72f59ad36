'''
One-time codes kept in Redis with a TTL, so they survive restarts and are
shared by every worker.
'''
import secrets
import string
from typing import Annotated

from fastapi import Depends
from redis.asyncio import Redis

from ..cache.redis_client import get_redis
from ..common.config import settings
from ..common.logger import log
from ..common.security_utils import HashedSecret
from ..database.db_enums import OTPMethodEnum


class OTPService:
    """
    send -> verify -> consume.
    A code is single-use; a successful verification leaves a short-lived
    "verified" marker that login/registration consume exactly once.
    """
    CODE_KEY = "otp:code:{contact}"
    VERIFIED_KEY = "otp:verified:{contact}"

    def __init__(self, redis: Annotated[Redis, Depends(get_redis)]):
        self.redis = redis

    @staticmethod
    def normalize_contact(contact: str) -> str:
        return contact.strip().lower()

    def _generate_code(self) -> str:
        if settings.OTP_DEMO_CODE:
            return settings.OTP_DEMO_CODE
        return "".join(secrets.choice(string.digits) for _ in range(settings.OTP_LENGTH))

    async def send_otp(self, contact: str, method: OTPMethodEnum) -> int:
        """Stores a fresh code for `contact` and returns its lifetime in seconds."""
        contact = self.normalize_contact(contact)
        code = self._generate_code()
        await self.redis.set(
            self.CODE_KEY.format(contact=contact),
            HashedSecret.get_hash(code),
            ex=settings.OTP_TTL_SECONDS
        )
        # No SMS/e-mail provider is wired in; the code goes to the log.
        log.info(f"OTP for {contact} via {method.value}: {code}")
        return settings.OTP_TTL_SECONDS

    async def verify_otp(self, contact: str, code: str) -> bool:
        contact = self.normalize_contact(contact)
        key = self.CODE_KEY.format(contact=contact)
        stored_hash = await self.redis.get(key)
        if stored_hash is None:
            log.warning(f"OTP verification for {contact} with no pending code.")
            return False
        if not HashedSecret.verify(code, stored_hash):
            log.warning(f"OTP verification for {contact} failed: wrong code.")
            return False

        await self.redis.delete(key)
        await self.redis.set(
            self.VERIFIED_KEY.format(contact=contact), "1", ex=settings.OTP_VERIFIED_TTL_SECONDS
        )
        log.info(f"OTP verified for {contact}.")
        return True

    async def consume_verification(self, contact: str) -> bool:
        """True exactly once per successful verification of `contact`."""
        removed = await self.redis.delete(self.VERIFIED_KEY.format(contact=self.normalize_contact(contact)))
        return removed == 1
