import asyncio
import logging
import time
from typing import Any, Dict, Optional

import tweepy
from tweepy.errors import HTTPException, TooManyRequests, TweepyException

from lib.error_handler import FatalUpstreamError, RateLimitedError, UpstreamError

logger = logging.getLogger(__name__)

def _status_of(error: HTTPException) -> Optional[int]:
    response = getattr(error, 'response', None)
    return getattr(response, 'status_code', None) or getattr(response, 'status', None)

def _reset_delay_ms(error: HTTPException) -> Optional[float]:
    response = getattr(error, 'response', None)
    headers = getattr(response, 'headers', None) or {}
    reset = headers.get('x-rate-limit-reset')
    if not reset:
        return None
    try:
        return max(0.0, (float(reset) - time.time()) * 1000)
    except ValueError:
        return None

def classify_twitter_error(error: Exception) -> UpstreamError:
    """Map a tweepy exception onto the retryable/fatal taxonomy, keeping the HTTP status."""
    if isinstance(error, TooManyRequests):
        return RateLimitedError(str(error), retry_after_ms=_reset_delay_ms(error), service="twitter")
    if isinstance(error, HTTPException):
        detail = "; ".join(error.api_messages) if error.api_messages else str(error)
        return FatalUpstreamError(detail, status=_status_of(error), service="twitter")
    return FatalUpstreamError(str(error), service="twitter")

class TwitterClient:
    """Publish capability backed by the Twitter API v2 (user-context OAuth 1.0a)."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        access_token: str,
        access_secret: str,
        client: Optional[tweepy.Client] = None
    ):
        logger.info(f"Creating Twitter client with API key: {api_key[:4]}...")
        self.client = client or tweepy.Client(
            consumer_key=api_key,
            consumer_secret=api_secret,
            access_token=access_token,
            access_token_secret=access_secret
        )

    async def create_post(self, text: str, reply_to: Optional[str] = None) -> str:
        """Publish a post, optionally as a reply, and return the id Twitter assigned."""
        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self.client.create_tweet(
                    text=text,
                    in_reply_to_tweet_id=reply_to,
                    user_auth=True
                )
            )
        except TweepyException as e:
            logger.error(f"Twitter error posting tweet: {str(e)}")
            raise classify_twitter_error(e) from e

        return str(response.data['id'])

    async def get_me(self) -> Dict[str, Any]:
        """Fetch the authenticated user. Used as a liveness probe, posts nothing."""
        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self.client.get_me(user_auth=True)
            )
        except TweepyException as e:
            logger.error(f"Twitter error fetching authenticated user: {str(e)}")
            raise classify_twitter_error(e) from e

        user = response.data
        return {'id': str(user.id), 'username': user.username}
