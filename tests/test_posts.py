import json
import pytest

from api.models import MAX_POST_LENGTH
from api.services.posts import (
    ALTERNATIVES_SYSTEM_PROMPT,
    THREAD_SYSTEM_PROMPT,
    PostService,
    parse_posts,
)
from lib.cache import CACHE_TIMEOUT, FingerprintCache
from lib.error_handler import FatalUpstreamError
from lib.retry import RetryController

from conftest import FakeClock, FakeOpenAI, FakeSleep, rate_limited

def make_service(responses):
    client = FakeOpenAI(responses=responses)
    sleep = FakeSleep()
    service = PostService(client, retry=RetryController(base_delay_ms=10, sleep=sleep))
    return service, client, sleep

def tweets(*posts):
    return json.dumps({"tweets": list(posts)})

@pytest.mark.asyncio
async def test_segments_text_into_generated_posts():
    service, client, _ = make_service([tweets("First thought 1/2", "Second thought 2/2")])

    posts = await service.segment_to_posts("First thought. Second thought.")

    assert posts == ["First thought 1/2", "Second thought 2/2"]
    system_prompt, user_prompt = client.chat_calls[0]
    assert system_prompt == THREAD_SYSTEM_PROMPT
    assert "First thought. Second thought." in user_prompt

@pytest.mark.asyncio
async def test_empty_input_returns_single_empty_post():
    service, client, _ = make_service([tweets("unused")])

    assert await service.segment_to_posts("") == [""]
    assert await service.segment_to_posts("   \n\t") == [""]
    assert client.chat_calls == []

@pytest.mark.asyncio
async def test_same_text_twice_calls_upstream_once():
    service, client, _ = make_service([tweets("Cached post")])

    first = await service.segment_to_posts("Say it once")
    second = await service.segment_to_posts("  Say it once  ")

    assert first == second == ["Cached post"]
    assert len(client.chat_calls) == 1

@pytest.mark.asyncio
@pytest.mark.parametrize("content", [
    "not json at all",
    json.dumps({"posts": ["wrong field"]}),
    json.dumps({"tweets": "not a list"}),
    json.dumps({"tweets": []}),
    json.dumps({"tweets": ["ok", 7]}),
    json.dumps(["bare", "list"]),
    tweets("x" * (MAX_POST_LENGTH + 1)),
])
async def test_malformed_response_falls_back_to_input(content):
    service, _, _ = make_service([content])

    posts = await service.segment_to_posts("keep my words")

    assert posts == ["keep my words"]

@pytest.mark.asyncio
async def test_upstream_failure_fallback_is_cached():
    service, client, _ = make_service([
        FatalUpstreamError("Server error", status=500),
        tweets("Works now"),
    ])

    assert await service.segment_to_posts("my thought") == ["my thought"]
    assert await service.segment_to_posts("my thought") == ["my thought"]
    assert len(client.chat_calls) == 1

@pytest.mark.asyncio
async def test_failed_text_regenerates_after_cache_window():
    clock = FakeClock()
    client = FakeOpenAI(responses=[FatalUpstreamError("Server error", status=500), tweets("Works now")])
    service = PostService(
        client,
        retry=RetryController(base_delay_ms=10, sleep=FakeSleep()),
        cache=FingerprintCache('posts', clock=clock)
    )

    assert await service.segment_to_posts("my thought") == ["my thought"]
    clock.advance(CACHE_TIMEOUT)
    assert await service.segment_to_posts("my thought") == ["Works now"]
    assert len(client.chat_calls) == 2

@pytest.mark.asyncio
async def test_rate_limited_generation_is_retried():
    service, client, sleep = make_service([rate_limited(), tweets("After retry")])

    posts = await service.segment_to_posts("busy hour")

    assert posts == ["After retry"]
    assert len(client.chat_calls) == 2
    assert sleep.delays == [0.01]

@pytest.mark.asyncio
async def test_exhausted_retries_fall_back_to_input():
    service, client, _ = make_service([rate_limited()])

    posts = await service.segment_to_posts("still busy")

    assert posts == ["still busy"]
    assert len(client.chat_calls) == 3

@pytest.mark.asyncio
async def test_generated_posts_respect_length_limit():
    long_posts = ["a" * MAX_POST_LENGTH, "b" * 120]
    service, _, _ = make_service([tweets(*long_posts)])

    posts = await service.segment_to_posts("long text " * 50)

    assert all(len(post) <= MAX_POST_LENGTH for post in posts)

def test_thread_prompt_encodes_voice_and_length_rules():
    prompt = THREAD_SYSTEM_PROMPT.lower()

    assert "voice" in prompt and "tone" in prompt and "register" in prompt
    assert "essential grammar" in prompt
    assert "do not paraphrase" in prompt
    assert str(MAX_POST_LENGTH) in prompt
    assert "1/3" in prompt
    assert '"tweets"' in prompt

def test_parse_posts_strips_whitespace():
    assert parse_posts(tweets("  padded  ")) == ["padded"]

@pytest.mark.asyncio
async def test_generate_options_returns_variants():
    service, client, _ = make_service([tweets("One", "Two", "Three")])

    options = await service.generate_options("an idea")

    assert options == ["One", "Two", "Three"]
    assert len(service.cache) == 0

@pytest.mark.asyncio
async def test_generate_alternatives_uses_alternatives_prompt():
    service, client, _ = make_service([tweets("Alt one", "Alt two")])

    await service.generate_options("existing tweet", alternatives_only=True)

    system_prompt, user_prompt = client.chat_calls[0]
    assert system_prompt == ALTERNATIVES_SYSTEM_PROMPT
    assert '"existing tweet"' in user_prompt

@pytest.mark.asyncio
async def test_generate_options_falls_back_on_failure():
    service, _, _ = make_service([FatalUpstreamError("boom", status=500)])

    assert await service.generate_options("an idea") == ["an idea"]
