import logging
from typing import List, Optional, Sequence

from api.models import MAX_POST_LENGTH, PublishedPost, PublishedThread
from lib.error_handler import PublishError, ValidationError

logger = logging.getLogger(__name__)

def validate_post(text: str) -> None:
    if not text or not text.strip():
        raise ValidationError("Post cannot be empty")
    if len(text) > MAX_POST_LENGTH:
        raise ValidationError(f"Post exceeds the {MAX_POST_LENGTH} character limit ({len(text)} characters)")

def _preview(text: str) -> str:
    return f"{text[:30]}{'...' if len(text) > 30 else ''}"

class ThreadPublisher:
    """
    Publishes a fixed, ordered list of posts, each one a reply to the previous.

    Posts go out strictly one at a time because every reply needs the id the
    platform assigned to the post before it. The first failure stops the run.
    Nothing already published is deleted: the platform has no atomic
    multi-post write, so the published prefix is reported on the error.
    """

    def __init__(self, twitter_client):
        self.client = twitter_client

    async def publish_thread(self, posts: Sequence[str]) -> PublishedThread:
        if not posts:
            raise ValidationError("No posts provided for thread")

        # Every post is checked before the first one goes out
        for index, text in enumerate(posts):
            try:
                validate_post(text)
            except ValidationError as e:
                logger.error(f"Post #{index + 1} in thread is invalid: {e.message}")
                raise PublishError(index, e.message, cause=e) from e

        published: List[PublishedPost] = []
        reply_to: Optional[str] = None

        for index, text in enumerate(posts):
            logger.info(f"Posting tweet #{index + 1}/{len(posts)} in thread: {_preview(text)}")
            try:
                remote_id = await self.client.create_post(text, reply_to=reply_to)
            except Exception as e:
                logger.error(
                    f"Thread stopped at tweet #{index + 1}; "
                    f"{len(published)} already published: {str(e)}"
                )
                raise PublishError(index, str(e), published=published, cause=e) from e

            published.append(PublishedPost(post=text, remote_id=remote_id))
            reply_to = remote_id
            logger.info(f"Successfully posted tweet #{index + 1} with ID: {remote_id}")

        thread = PublishedThread(posts=tuple(published))
        logger.info(f"Thread {thread.thread_id} published with {len(published)} post(s)")
        return thread

    async def publish_single(self, text: str) -> PublishedPost:
        try:
            validate_post(text)
        except ValidationError as e:
            raise PublishError(0, e.message, cause=e) from e

        logger.info(f"Posting tweet: {_preview(text)}")
        try:
            remote_id = await self.client.create_post(text)
        except Exception as e:
            logger.error(f"Failed to post tweet: {str(e)}")
            raise PublishError(0, str(e), cause=e) from e

        logger.info(f"Successfully posted tweet with ID: {remote_id}")
        return PublishedPost(post=text, remote_id=remote_id)
