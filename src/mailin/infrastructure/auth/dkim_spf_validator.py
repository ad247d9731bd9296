"""DKIM/SPF validator backed by dkimpy and pyspf.

Both libraries are synchronous and perform DNS lookups, so every check runs
in a worker thread to keep the event loop free for other sessions.

Whether the runtime is installed is probed once at startup with
is_validator_runtime_available(); the result is frozen into PipelineConfig
and the orchestrator never calls this adapter when it is False.
"""

import asyncio
import importlib.util
import logging

from ...domain.mail.ports.authentication_port import AuthenticationValidatorPort

logger = logging.getLogger(__name__)

VALIDATOR_MODULES = ("dkim", "spf", "dns")


def is_validator_runtime_available() -> bool:
    """Check that dkimpy, pyspf and dnspython can be imported."""
    missing = [name for name in VALIDATOR_MODULES if importlib.util.find_spec(name) is None]
    if missing:
        logger.warning(
            f"Authentication runtime unavailable (missing: {', '.join(missing)}); "
            f"DKIM and SPF will be reported as failed"
        )
        return False
    return True


class DkimSpfValidator(AuthenticationValidatorPort):
    """Authentication validator using dkimpy for DKIM and pyspf for SPF."""

    def __init__(self):
        import dkim
        import spf

        self._dkim = dkim
        self._spf = spf

    async def validate_dkim(self, raw_message: bytes) -> bool:
        return await asyncio.to_thread(self._verify_dkim, raw_message)

    async def validate_spf(self, remote_address: str, envelope_from: str, remote_host: str) -> bool:
        return await asyncio.to_thread(self._check_spf, remote_address, envelope_from, remote_host)

    def _verify_dkim(self, raw_message: bytes) -> bool:
        try:
            return bool(self._dkim.verify(raw_message))
        except self._dkim.DKIMException as e:
            # Malformed or unverifiable signature is a failing verdict
            logger.info(f"DKIM verification error: {e}")
            return False

    def _check_spf(self, remote_address: str, envelope_from: str, remote_host: str) -> bool:
        try:
            result, explanation = self._spf.check2(
                i=remote_address,
                s=envelope_from or "",
                h=remote_host or "",
            )
        except (self._spf.TempError, self._spf.PermError, ValueError) as e:
            logger.info(f"SPF check error: {e}")
            return False

        logger.debug(f"SPF result: {result} ({explanation})")
        return result == "pass"
