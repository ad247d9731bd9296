"""Authentication Validator Port - DKIM and SPF verdicts.

Both checks answer a single boolean. A negative verdict is a result, not an
error: implementations map malformed signatures and lookup failures to False.
"""

from abc import ABC, abstractmethod


class AuthenticationValidatorPort(ABC):
    """Port interface for message authentication."""

    @abstractmethod
    async def validate_dkim(self, raw_message: bytes) -> bool:
        """Verify the DKIM signature of the raw message bytes."""
        pass

    @abstractmethod
    async def validate_spf(self, remote_address: str, envelope_from: str, remote_host: str) -> bool:
        """Check whether remote_address may send mail for envelope_from."""
        pass
