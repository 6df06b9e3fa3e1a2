from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra='ignore')

    # OpenAI settings
    openai_api_key: str = ''
    openai_transcription_model: str = 'whisper-1'
    openai_chat_model: str = 'gpt-4o'
    openai_max_tokens: int = 1000

    # Twitter settings
    twitter_api_key: str = ''
    twitter_api_secret: str = ''
    twitter_access_token: str = ''
    twitter_access_secret: str = ''

    # Retry settings
    retry_base_delay_ms: int = Field(default=1000, ge=0)

    # Upload settings
    max_upload_bytes: int = 50 * 1024 * 1024

    log_level: str = 'INFO'

def get_settings() -> Settings:
    return Settings()
