import json
import logging
from typing import List, Optional

from api.models import MAX_POST_LENGTH
from lib.cache import FingerprintCache, text_fingerprint
from lib.retry import RetryController

logger = logging.getLogger(__name__)

THREAD_SYSTEM_PROMPT = (
    "You turn transcribed speech into a Twitter thread. "
    "Preserve the speaker's voice, tone, and register exactly. "
    "Make only essential grammar corrections. "
    "Do not paraphrase, formalize, summarize, or add content. "
    f"Split the text into posts of at most {MAX_POST_LENGTH} characters each, breaking at natural sentence boundaries. "
    "If there is more than one post, end each post with its position as i/n (1/3, 2/3, 3/3), counted within the limit. "
    "A single post gets no numbering. "
    'Respond with a JSON object of the form {"tweets": ["post 1", "post 2"]}.'
)

OPTIONS_SYSTEM_PROMPT = (
    "Convert the following transcribed speech into 3 Twitter-ready posts. "
    f"Each post must be under {MAX_POST_LENGTH} characters, engaging, and keep the core message. "
    'Respond with a JSON object of the form {"tweets": ["option 1", "option 2", "option 3"]}.'
)

ALTERNATIVES_SYSTEM_PROMPT = (
    "Generate 2 alternative versions of the given tweet. "
    f"Each must be under {MAX_POST_LENGTH} characters, engaging, and optimized for social media. "
    'Respond with a JSON object of the form {"tweets": ["alternative 1", "alternative 2"]}.'
)

def parse_posts(content: str) -> Optional[List[str]]:
    """
    Pull the post list out of a model response. Returns None when the response
    does not conform: not JSON, no `tweets` list, an empty list, a non-string
    entry, or a post over the length limit.
    """
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError):
        logger.warning("Generation response is not valid JSON")
        return None

    posts = parsed.get('tweets') if isinstance(parsed, dict) else None
    if not isinstance(posts, list) or not posts:
        logger.warning(f"Unexpected response format: {str(parsed)[:100]}")
        return None

    if not all(isinstance(post, str) for post in posts):
        logger.warning("Generation response contains non-string posts")
        return None

    posts = [post.strip() for post in posts]
    if any(not post or len(post) > MAX_POST_LENGTH for post in posts):
        logger.warning("Generation response contains empty or over-length posts")
        return None

    return posts

class PostService:
    """
    Rewrites free text into post-sized segments. This is the one fail-open step
    of the pipeline: when generation or parsing fails the original text comes
    back as a single post.
    """

    def __init__(self, openai_client, retry: Optional[RetryController] = None, cache: Optional[FingerprintCache] = None):
        self.client = openai_client
        self.retry = retry or RetryController()
        self.cache = cache if cache is not None else FingerprintCache('posts')

    async def segment_to_posts(self, text: str) -> List[str]:
        """Split text into an ordered list of posts. Never raises."""
        if not text or not text.strip():
            return [""]

        self.cache.evict_expired()
        fingerprint = text_fingerprint(text)
        cached = self.cache.get(fingerprint)
        if cached is not None:
            logger.info("Returning cached thread")
            return list(cached)

        logger.info(f"Generating thread for: {text[:100]}{'...' if len(text) > 100 else ''}")
        try:
            content = await self.retry.run(
                lambda: self.client.complete_json(THREAD_SYSTEM_PROMPT, f"Here is the transcribed speech: {text}")
            )
        except Exception as e:
            logger.error(f"Thread generation failed, falling back to original text: {str(e)}")
            content = None

        posts = parse_posts(content) if content is not None else None
        if posts is None:
            posts = [text]

        self.cache.put(fingerprint, tuple(posts))
        logger.info(f"Generated thread with {len(posts)} post(s)")
        return posts

    async def generate_options(self, text: str, alternatives_only: bool = False) -> List[str]:
        """Offer standalone post variants for the text. Falls back to the text itself."""
        if not text or not text.strip():
            return [""]

        if alternatives_only:
            system_prompt = ALTERNATIVES_SYSTEM_PROMPT
            user_prompt = f'Generate alternative tweet versions for this existing tweet: "{text}"'
        else:
            system_prompt = OPTIONS_SYSTEM_PROMPT
            user_prompt = f'Here is the transcribed speech: "{text}"'

        try:
            content = await self.retry.run(
                lambda: self.client.complete_json(system_prompt, user_prompt)
            )
        except Exception as e:
            logger.error(f"Option generation failed, falling back to original text: {str(e)}")
            return [text]

        options = parse_posts(content)
        if options is None:
            return [text]

        for index, option in enumerate(options):
            logger.info(f"Option {index + 1}: {option[:30]}...")
        return options
