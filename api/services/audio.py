import logging
import os
import tempfile
from typing import Optional

from api.models import AudioBuffer, AudioFormat, TranscriptionResult
from lib.cache import FingerprintCache, audio_fingerprint
from lib.error_handler import TranscriptionError

logger = logging.getLogger(__name__)

class AudioService:
    """
    Turns a recorded clip into text. Repeat submissions of the same clip inside
    the cache window are answered from the transcription cache without another
    billable call.
    """

    def __init__(self, openai_client, cache: Optional[FingerprintCache] = None):
        self.client = openai_client
        self.cache = cache if cache is not None else FingerprintCache('transcription')
        logger.info("Audio service initialized")

    async def transcribe(self, audio: AudioBuffer) -> TranscriptionResult:
        """Transcribe an audio buffer, raising TranscriptionError on any upstream failure."""
        self.cache.evict_expired()

        fingerprint = audio_fingerprint(audio.data)
        cached = self.cache.get(fingerprint)
        if cached is not None:
            logger.info(f"Returning cached transcription for {len(audio.data)} byte clip")
            return cached

        logger.info(f"Transcribing audio: format={audio.format.value}, size={len(audio.data)} bytes")
        try:
            text, duration = await self._transcribe_audio(audio.data, audio.format)
        except Exception as e:
            logger.error(f"Error transcribing audio: {str(e)}")
            raise TranscriptionError(str(e), cause=e) from e

        result = TranscriptionResult(text=text, duration_seconds=duration or 0)
        self.cache.put(fingerprint, result)

        logger.info(f"Transcription complete ({result.duration_seconds}s): {text[:50]}...")
        return result

    async def _transcribe_audio(self, audio_data: bytes, audio_format: AudioFormat):
        # The temp file is removed when the block exits, including on failure
        with tempfile.NamedTemporaryFile(suffix=f'.{audio_format.value}') as temp_file:
            temp_file.write(audio_data)
            temp_file.flush()

            logger.info(f"Temporary audio file size: {os.path.getsize(temp_file.name)} bytes")
            return await self.client.transcribe_audio(temp_file.name)
