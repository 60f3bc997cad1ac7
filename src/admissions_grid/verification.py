"""Email verification codes for the enrollment form.

A code is a zero-padded 6-digit number, valid for ten minutes and usable
once.  Re-sending to the same address is throttled to once per minute.
Delivery is pluggable: the default sender only logs, since mail transport
lives outside this package.
"""

import logging
import re
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass

from admissions_grid.errors import RecordValidationError, VerificationError, VerificationThrottledError

logger = logging.getLogger(__name__)

CODE_TTL_SECONDS: float = 600.0
RESEND_THROTTLE_SECONDS: float = 60.0
VERIFIED_TTL_SECONDS: float = 24 * 3600.0

_CODE_RE = re.compile(r"^\d{6}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

CodeSender = Callable[[str, str], None]


def is_valid_code_format(code: str) -> bool:
    """True iff *code* is exactly six ASCII digits."""
    return bool(_CODE_RE.match(code or ""))


def _log_sender(email: str, code: str) -> None:
    logger.info("verification code for %s: %s", email, code)


def _generate_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


@dataclass
class _PendingCode:
    code: str
    expires_at: float
    sent_at: float


class VerificationCodeService:
    """Issue and check email verification codes.

    Args:
        sender: Called with ``(email, code)`` for every issued code.
        clock: Monotonic seconds source; injectable for tests.
        code_factory: Produces new codes; injectable for tests.
    """

    def __init__(
        self,
        sender: CodeSender | None = None,
        clock: Callable[[], float] = time.monotonic,
        code_factory: Callable[[], str] = _generate_code,
    ) -> None:
        self._sender = sender or _log_sender
        self._clock = clock
        self._code_factory = code_factory
        self._pending: dict[str, _PendingCode] = {}
        self._verified: dict[str, float] = {}

    def send_code(self, email: str) -> None:
        """Issue a fresh code for *email* and hand it to the sender.

        Raises:
            RecordValidationError: If *email* is not a valid address.
            VerificationThrottledError: If a code was sent less than a
                minute ago.
        """
        email = self._check_email(email)
        now = self._clock()
        self._prune(now)

        pending = self._pending.get(email)
        if pending is not None:
            elapsed = now - pending.sent_at
            if elapsed < RESEND_THROTTLE_SECONDS:
                raise VerificationThrottledError(email, RESEND_THROTTLE_SECONDS - elapsed)

        code = self._code_factory()
        self._pending[email] = _PendingCode(
            code=code,
            expires_at=now + CODE_TTL_SECONDS,
            sent_at=now,
        )
        self._sender(email, code)
        logger.debug("issued verification code for %s", email)

    def verify_code(self, email: str, code: str) -> None:
        """Consume the pending code of *email* and mark the address verified.

        Raises:
            RecordValidationError: If *email* or *code* is malformed.
            VerificationError: If there is no live code or it does not match.
        """
        email = self._check_email(email)
        if not is_valid_code_format(code):
            raise RecordValidationError({"code": ["The code field must be 6 characters."]})

        pending = self._pending.get(email)
        if pending is None or pending.expires_at <= self._clock():
            self._pending.pop(email, None)
            raise VerificationError("Verification code has expired or does not exist")
        if not secrets.compare_digest(pending.code, code):
            raise VerificationError("Invalid verification code")

        del self._pending[email]
        self._verified[email] = self._clock() + VERIFIED_TTL_SECONDS
        logger.info("verified %s", email)

    def is_verified(self, email: str) -> bool:
        self._prune(self._clock())
        return email.strip().lower() in self._verified

    def _prune(self, now: float) -> None:
        """Forget expired codes and lapsed verifications."""
        self._pending = {e: p for e, p in self._pending.items() if p.expires_at > now}
        self._verified = {e: t for e, t in self._verified.items() if t > now}

    def _check_email(self, email: str) -> str:
        email = (email or "").strip().lower()
        if not _EMAIL_RE.match(email):
            raise RecordValidationError({"email": ["The email field must be a valid email address."]})
        return email
