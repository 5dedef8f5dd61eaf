import json

import httpx
import pytest

from campus_assistant.config import Settings
from campus_assistant.services.answer_service import (
    LLMAnswerGenerator,
    UnavailableAnswerGenerator,
    build_answer_generator,
)
from campus_assistant.services.llm_client import ChatCompletionsClient, OracleError


def _settings() -> Settings:
    return Settings(ai_api_key="test-key", ai_base_url="https://llm.test/v1/", ai_model="m")


def _reply(content) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


@pytest.mark.asyncio
async def test_answer_includes_question_and_context():
    prompts: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        prompts.append(body["messages"][0]["content"])
        return _reply("  The library closes at 10pm.  ")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        text = await LLMAnswerGenerator(_settings(), http).answer("When does the library close?", "Library hours: 8am-10pm")

    assert text == "The library closes at 10pm."
    assert "User question: When does the library close?" in prompts[0]
    assert "Library hours: 8am-10pm" in prompts[0]


@pytest.mark.asyncio
async def test_empty_question_rejected():
    with pytest.raises(OracleError):
        await LLMAnswerGenerator(_settings()).answer("   ")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="oops"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json=["x"]),
        _reply(""),
        _reply(None),
    ],
)
async def test_bad_responses_raise_oracle_error(response):
    def handler(request: httpx.Request) -> httpx.Response:
        return response

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(OracleError):
            await LLMAnswerGenerator(_settings(), http).answer("anything")


@pytest.mark.asyncio
async def test_unconfigured_client_raises():
    client = ChatCompletionsClient(Settings(ai_api_key=""))
    assert client.configured is False
    with pytest.raises(OracleError):
        await client.complete([{"role": "user", "content": "hi"}])


@pytest.mark.asyncio
async def test_unavailable_generator_always_raises():
    with pytest.raises(OracleError):
        await UnavailableAnswerGenerator().answer("hi")


def test_build_answer_generator_picks_by_config():
    assert isinstance(build_answer_generator(Settings(ai_api_key="")), UnavailableAnswerGenerator)
    assert isinstance(build_answer_generator(_settings()), LLMAnswerGenerator)
