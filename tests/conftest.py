import pytest
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to Python path
project_root = str(Path(__file__).parent.parent)
sys.path.append(project_root)

from lib.config import Settings
from lib.error_handler import FatalUpstreamError, RateLimitedError
from lib.retry import RetryController
from api.models import CredentialSet
from api.routes import Services, create_app
from api.services.audio import AudioService
from api.services.credentials import CredentialValidator
from api.services.posts import PostService

TEST_CREDENTIALS = CredentialSet(
    api_key='test-api-key',
    api_secret='test-api-secret',
    access_token='test-access-token',
    access_secret='test-access-secret'
)

class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

class FakeSleep:
    """Records requested delays instead of waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)

class FakeOpenAI:
    """
    Stands in for OpenAIClient. Each queued response is either returned or,
    when it is an exception, raised. The last response repeats.
    """

    def __init__(self, responses=None, transcription=("hello world", 3.5)):
        self.responses = list(responses or [])
        self.transcription = transcription
        self.chat_calls = []
        self.transcribe_calls = []
        self.seen_audio = []

    async def complete_json(self, system_prompt: str, user_prompt: str) -> str:
        self.chat_calls.append((system_prompt, user_prompt))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def transcribe_audio(self, audio_file_path: str):
        self.transcribe_calls.append(audio_file_path)
        with open(audio_file_path, 'rb') as audio_file:
            self.seen_audio.append(audio_file.read())
        if isinstance(self.transcription, Exception):
            raise self.transcription
        return self.transcription

class FakeTwitter:
    """Records every publish call in order; fails the call at `fail_at`."""

    def __init__(self, fail_at: Optional[int] = None, error: Optional[Exception] = None, me=None, me_error=None):
        self.fail_at = fail_at
        self.error = error or FatalUpstreamError("Forbidden", status=403, service="twitter")
        self.calls = []
        self.me = me or {'id': '42', 'username': 'voice_user'}
        self.me_error = me_error
        self.me_calls = 0

    async def create_post(self, text: str, reply_to: Optional[str] = None) -> str:
        index = len(self.calls)
        self.calls.append({'text': text, 'reply_to': reply_to})
        if index == self.fail_at:
            raise self.error
        return f"tweet-{index + 1}"

    async def get_me(self):
        self.me_calls += 1
        if self.me_error:
            raise self.me_error
        return self.me

@pytest.fixture
def settings():
    return Settings(
        openai_api_key='test-openai-key',
        twitter_api_key=TEST_CREDENTIALS.api_key,
        twitter_api_secret=TEST_CREDENTIALS.api_secret,
        twitter_access_token=TEST_CREDENTIALS.access_token,
        twitter_access_secret=TEST_CREDENTIALS.access_secret,
        retry_base_delay_ms=10
    )

@pytest.fixture
def fake_sleep():
    return FakeSleep()

@pytest.fixture
def fake_openai():
    return FakeOpenAI(responses=['{"tweets": ["Generated post"]}'])

@pytest.fixture
def fake_twitter():
    return FakeTwitter()

@pytest.fixture
def services(fake_openai, fake_twitter, fake_sleep):
    return Services(
        audio=AudioService(fake_openai),
        posts=PostService(fake_openai, retry=RetryController(base_delay_ms=10, sleep=fake_sleep)),
        credentials=CredentialValidator(TEST_CREDENTIALS, client_factory=lambda credentials: fake_twitter)
    )

@pytest.fixture
def test_client(settings, services):
    app = create_app(settings=settings, services=services)
    app.config['TESTING'] = True
    return app.test_client()

def rate_limited(retry_after_ms=None):
    return RateLimitedError("Rate limit reached", retry_after_ms=retry_after_ms, service="openai")
