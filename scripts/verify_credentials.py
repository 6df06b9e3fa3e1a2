import asyncio
import logging
import sys

from lib.config import get_settings
from api.models import CredentialSet
from api.routes import create_twitter_client
from api.services.credentials import CredentialValidator

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def verify_credentials() -> bool:
    """Check the configured Twitter credentials: presence, then liveness."""
    validator = CredentialValidator(
        CredentialSet.from_settings(get_settings()),
        client_factory=create_twitter_client
    )

    presence = validator.check_presence()
    print(f"\nPresence: {presence.message}")
    if not presence.valid:
        for name in presence.missing_fields:
            print(f"- missing {name}")
        return False

    liveness = asyncio.run(validator.check_liveness())
    print(f"Liveness: {liveness.message}")
    if liveness.identity:
        print(f"- user id: {liveness.identity['id']}")
        print(f"- username: {liveness.identity['username']}")
    return liveness.valid

if __name__ == "__main__":
    sys.exit(0 if verify_credentials() else 1)
