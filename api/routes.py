import base64
import binascii
import logging
import sys
from typing import Optional

from flask import Flask, jsonify, request
from pydantic import ValidationError as SchemaError

from lib.config import Settings, get_settings
from lib.error_handler import AppError, PublishError, ValidationError
from lib.openai_client import OpenAIClient
from lib.retry import RetryController
from lib.twitter_client import TwitterClient
from api.models import (
    AudioBuffer,
    CredentialSet,
    GenerateTweetRequest,
    PostTweetRequest,
    TranscribeRequest,
)
from api.services.audio import AudioService
from api.services.credentials import CredentialValidator
from api.services.posts import PostService
from api.services.publisher import ThreadPublisher

logger = logging.getLogger(__name__)

def configure_logging(level: str = 'INFO') -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stdout,
        force=True  # Ensure our config takes precedence
    )

def create_twitter_client(credentials: CredentialSet) -> TwitterClient:
    return TwitterClient(
        api_key=credentials.api_key,
        api_secret=credentials.api_secret,
        access_token=credentials.access_token,
        access_secret=credentials.access_secret
    )

class Services:
    """The long-lived pipeline services one app instance shares across requests."""

    def __init__(self, audio: AudioService, posts: PostService, credentials: CredentialValidator):
        self.audio = audio
        self.posts = posts
        self.credentials = credentials

def build_services(settings: Settings) -> Services:
    logger.info("Initializing OpenAI client...")
    openai_client = OpenAIClient(settings)
    logger.info("OpenAI client initialized successfully")

    retry = RetryController(base_delay_ms=settings.retry_base_delay_ms)

    services = Services(
        audio=AudioService(openai_client),
        posts=PostService(openai_client, retry=retry),
        credentials=CredentialValidator(
            CredentialSet.from_settings(settings),
            client_factory=create_twitter_client
        )
    )
    logger.info("All services initialized successfully")
    return services

def _invalid_request(error: SchemaError):
    return jsonify({
        'message': 'Invalid request data',
        'errors': error.errors(include_url=False, include_context=False, include_input=False)
    }), 400

def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> Flask:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    services = services or build_services(settings)
    app.extensions['services'] = services

    @app.errorhandler(PublishError)
    def handle_publish_error(e: PublishError):
        return jsonify({
            'message': e.user_message,
            'error': e.message,
            'failedIndex': e.failed_index,
            'publishedIds': e.published_ids
        }), e.status_code

    @app.errorhandler(AppError)
    def handle_app_error(e: AppError):
        logger.error(f"Request failed: {e.message}")
        return jsonify({'message': e.user_message, 'error': e.message}), e.status_code

    @app.route("/test", methods=['GET'])
    def test():
        """Test endpoint to verify server is running"""
        return jsonify({
            "status": "ok",
            "message": "Server is running"
        })

    @app.route("/api/transcribe", methods=['POST'])
    async def transcribe():
        try:
            body = TranscribeRequest.model_validate(request.get_json(silent=True) or {})
        except SchemaError as e:
            return _invalid_request(e)

        try:
            audio_data = base64.b64decode(body.audio_data, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError("Audio data is not valid base64")

        if len(audio_data) > settings.max_upload_bytes:
            return jsonify({'message': 'Audio file is too large'}), 413

        result = await services.audio.transcribe(AudioBuffer(data=audio_data, format=body.format))
        return jsonify({
            'transcript': result.text,
            'durationSeconds': result.duration_seconds
        })

    @app.route("/api/process-and-create-tweet", methods=['POST'])
    async def process_and_create_tweet():
        try:
            body = GenerateTweetRequest.model_validate(request.get_json(silent=True) or {})
        except SchemaError as e:
            return _invalid_request(e)

        tweets = await services.posts.segment_to_posts(body.text)
        return jsonify({'tweets': tweets})

    @app.route("/api/generate-tweet", methods=['POST'])
    async def generate_tweet():
        try:
            body = GenerateTweetRequest.model_validate(request.get_json(silent=True) or {})
        except SchemaError as e:
            return _invalid_request(e)

        tweets = await services.posts.generate_options(body.text, body.alternatives_only)
        return jsonify({'tweets': tweets})

    @app.route("/api/check-twitter-credentials", methods=['GET'])
    def check_twitter_credentials():
        presence = services.credentials.check_presence()
        if not presence.valid:
            return jsonify({
                'status': 'error',
                'message': presence.message,
                'missingCredentials': presence.missing_fields
            }), 400
        return jsonify({'status': 'ok', 'message': presence.message})

    @app.route("/api/verify-twitter-credentials", methods=['GET'])
    async def verify_twitter_credentials():
        liveness = await services.credentials.check_liveness()
        if not liveness.valid:
            return jsonify({'status': 'error', 'message': liveness.message}), liveness.http_status
        return jsonify({
            'status': 'ok',
            'message': liveness.message,
            'user': liveness.identity
        })

    @app.route("/api/post-tweet", methods=['POST'])
    async def post_tweet():
        try:
            body = PostTweetRequest.model_validate(request.get_json(silent=True) or {})
        except SchemaError as e:
            return _invalid_request(e)

        if not body.tweets and body.text is None:
            raise ValidationError("Provide either text or a non-empty list of tweets")

        # Presence first so an incomplete config costs no round trip
        presence = services.credentials.check_presence()
        if not presence.valid:
            return jsonify({
                'message': f"Cannot post tweet: {presence.message}",
                'missingCredentials': presence.missing_fields
            }), 400

        liveness = await services.credentials.check_liveness()
        if not liveness.valid:
            return jsonify({'message': liveness.message}), liveness.http_status

        publisher = ThreadPublisher(services.credentials.publishing_client())

        if body.tweets:
            thread = await publisher.publish_thread(body.tweets)
            return jsonify({'ids': thread.remote_ids, 'threadId': thread.thread_id})

        published = await publisher.publish_single(body.text)
        return jsonify({'id': published.remote_id})

    return app
