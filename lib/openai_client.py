import asyncio
import logging
from typing import Optional, Tuple

import openai
from openai import OpenAI

from lib.config import Settings
from lib.error_handler import FatalUpstreamError, RateLimitedError, UpstreamError

logger = logging.getLogger(__name__)

def _retry_after_ms(error: openai.APIStatusError) -> Optional[float]:
    headers = error.response.headers if error.response is not None else {}
    try:
        if headers.get('retry-after-ms'):
            return float(headers['retry-after-ms'])
        if headers.get('retry-after'):
            return float(headers['retry-after']) * 1000
    except ValueError:
        logger.warning(f"Unparseable retry-after header: {headers.get('retry-after')}")
    return None

def classify_openai_error(error: Exception) -> UpstreamError:
    """Map an OpenAI SDK exception onto the retryable/fatal taxonomy."""
    if isinstance(error, openai.RateLimitError):
        # An exhausted quota also arrives as 429 but waiting will not clear it
        if getattr(error, 'code', None) == 'insufficient_quota':
            return FatalUpstreamError(str(error), status=429, service="openai")
        return RateLimitedError(str(error), retry_after_ms=_retry_after_ms(error), service="openai")
    if isinstance(error, openai.APIStatusError):
        return FatalUpstreamError(str(error), status=error.status_code, service="openai")
    return FatalUpstreamError(str(error), service="openai")

class OpenAIClient:
    """
    Thin async wrapper over the OpenAI SDK. SDK calls run in the default
    executor; SDK-level retries are disabled so `RetryController` is the only
    retry policy.
    """

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None):
        self.client = client or OpenAI(api_key=settings.openai_api_key, max_retries=0)
        self.transcription_model = settings.openai_transcription_model
        self.chat_model = settings.openai_chat_model
        self.max_tokens = settings.openai_max_tokens

    async def transcribe_audio(self, audio_file_path: str) -> Tuple[str, float]:
        """
        Transcribe an audio file with Whisper. Returns the text and the duration
        in seconds, 0 when the service omits it.
        """
        def _create():
            with open(audio_file_path, 'rb') as audio_file:
                return self.client.audio.transcriptions.create(
                    model=self.transcription_model,
                    file=audio_file,
                    response_format="verbose_json"
                )

        try:
            loop = asyncio.get_running_loop()
            transcript = await loop.run_in_executor(None, _create)
        except openai.OpenAIError as e:
            raise classify_openai_error(e) from e

        text = getattr(transcript, 'text', None) or ''
        duration = getattr(transcript, 'duration', None) or 0
        return text, float(duration)

    async def complete_json(self, system_prompt: str, user_prompt: str) -> str:
        """
        Run a chat completion that is asked to answer with a JSON object.
        Returns the raw message content.
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt}
        ]

        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self.client.chat.completions.create(
                    model=self.chat_model,
                    messages=messages,
                    response_format={"type": "json_object"},
                    max_tokens=self.max_tokens
                )
            )
        except openai.OpenAIError as e:
            raise classify_openai_error(e) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise FatalUpstreamError("Empty response from OpenAI", service="openai")
        return content
