from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from lib.config import Settings

# Fixed by the platform, not configurable
MAX_POST_LENGTH = 280

class AudioFormat(str, Enum):
    WAV = 'wav'
    MP3 = 'mp3'
    OGG = 'ogg'
    WEBM = 'webm'

class AudioBuffer(BaseModel):
    """Raw recorded audio plus its declared container format. Never persisted."""
    model_config = ConfigDict(frozen=True)

    data: bytes
    format: AudioFormat = AudioFormat.WEBM

class TranscriptionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    duration_seconds: float = 0

class PublishedPost(BaseModel):
    model_config = ConfigDict(frozen=True)

    post: str
    remote_id: str

class PublishedThread(BaseModel):
    model_config = ConfigDict(frozen=True)

    posts: Tuple[PublishedPost, ...]

    @property
    def remote_ids(self) -> List[str]:
        return [published.remote_id for published in self.posts]

    @property
    def thread_id(self) -> str:
        return self.posts[0].remote_id

CREDENTIAL_ENV_NAMES = {
    'api_key': 'TWITTER_API_KEY',
    'api_secret': 'TWITTER_API_SECRET',
    'access_token': 'TWITTER_ACCESS_TOKEN',
    'access_secret': 'TWITTER_ACCESS_SECRET',
}

class CredentialSet(BaseModel):
    """The four Twitter user-context credentials. Valid only as a complete set."""
    model_config = ConfigDict(frozen=True)

    api_key: str = ''
    api_secret: str = ''
    access_token: str = ''
    access_secret: str = ''

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialSet":
        return cls(
            api_key=settings.twitter_api_key,
            api_secret=settings.twitter_api_secret,
            access_token=settings.twitter_access_token,
            access_secret=settings.twitter_access_secret
        )

    def missing_fields(self) -> List[str]:
        return [
            env_name for field, env_name in CREDENTIAL_ENV_NAMES.items()
            if not getattr(self, field).strip()
        ]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

class PresenceResult(BaseModel):
    valid: bool
    missing_fields: List[str] = Field(default_factory=list)
    message: str = ''

class LivenessResult(BaseModel):
    valid: bool
    message: str
    identity: Optional[Dict[str, Any]] = None
    # Upstream HTTP status of a rejected check, if Twitter answered
    status: Optional[int] = None

    @property
    def http_status(self) -> int:
        return 429 if self.status == 429 else 401

# Request bodies for the HTTP layer

class TranscribeRequest(BaseModel):
    audio_data: str = Field(alias='audioData')
    format: AudioFormat

class GenerateTweetRequest(BaseModel):
    text: str
    alternatives_only: bool = Field(default=False, alias='alternativesOnly')

class PostTweetRequest(BaseModel):
    text: Optional[str] = Field(default=None, max_length=MAX_POST_LENGTH)
    tweets: Optional[List[str]] = None
