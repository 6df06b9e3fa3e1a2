import logging
from typing import Callable, Optional

from api.models import CredentialSet, LivenessResult, PresenceResult
from lib.error_handler import ErrorHandler, UpstreamError

logger = logging.getLogger(__name__)

class CredentialValidator:
    """
    Checks Twitter credentials before anything is published: first that all
    four values are configured (local), then that Twitter accepts them (one
    authenticated read).
    """

    def __init__(self, credentials: CredentialSet, client_factory: Callable[[CredentialSet], object]):
        self.credentials = credentials
        self.client_factory = client_factory

    def check_presence(self) -> PresenceResult:
        missing = self.credentials.missing_fields()
        if missing:
            message = f"Missing Twitter API credentials: {', '.join(missing)}"
            logger.warning(message)
            return PresenceResult(valid=False, missing_fields=missing, message=message)

        return PresenceResult(valid=True, message="Twitter API credentials are properly configured")

    async def check_liveness(self) -> LivenessResult:
        presence = self.check_presence()
        if not presence.valid:
            return LivenessResult(valid=False, message=presence.message)

        logger.info("Verifying Twitter credentials by fetching the authenticated user")
        try:
            identity = await self.client_factory(self.credentials).get_me()
        except UpstreamError as e:
            logger.error(f"Credential verification failed: {e.message}")
            if e.status in (401, 403, 429):
                message = ErrorHandler.describe_upstream_status(e.status)
            else:
                message = f"Twitter API error: {e.message}"
            return LivenessResult(valid=False, message=message, status=e.status)
        except Exception as e:
            logger.error(f"Credential verification failed: {str(e)}")
            return LivenessResult(valid=False, message=f"Twitter API error: {str(e)}")

        logger.info(f"Verified credentials for user: {identity.get('username')} ({identity.get('id')})")
        return LivenessResult(
            valid=True,
            message=f"Twitter API credentials verified for user: {identity.get('username')}",
            identity=identity
        )

    def publishing_client(self) -> Optional[object]:
        """A client for the configured credentials, or None when the set is incomplete."""
        if not self.credentials.is_complete:
            return None
        return self.client_factory(self.credentials)
