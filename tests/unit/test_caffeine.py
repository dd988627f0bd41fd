"""Tests for caffeine lookup and the LLM estimator."""

import json

import httpx
import pytest

from brewlog.caffeine import OPENAI_API_URL, CaffeineEstimator, resolve_caffeine_mg


class TestResolveCaffeine:
    @pytest.mark.parametrize(
        "drink,expected",
        [
            ("Espresso", 63),
            ("double espresso", 126),
            ("Iced Oat Latte", 130),
            ("House cold brew", 200),
            ("Decaf", 3),
            ("sparkling water", 0),
        ],
    )
    def test_lookup(self, drink, expected):
        assert resolve_caffeine_mg(drink) == expected


def chat_reply(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def estimator_with(handler) -> CaffeineEstimator:
    return CaffeineEstimator(
        api_key="sk-test", model="test-model", transport=httpx.MockTransport(handler)
    )


class TestCaffeineEstimator:
    async def test_estimate(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=chat_reply(" 150\n"))

        assert await estimator_with(handler).estimate("Red Eye") == 150
        assert seen["url"] == OPENAI_API_URL
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "test-model"
        assert "Red Eye" in seen["body"]["messages"][-1]["content"]

    async def test_no_api_key(self):
        def handler(request):
            raise AssertionError("no request expected")

        estimator = CaffeineEstimator(api_key=None, transport=httpx.MockTransport(handler))
        assert await estimator.estimate("latte") is None

    async def test_error_status(self):
        estimator = estimator_with(lambda request: httpx.Response(500, text="upstream down"))
        assert await estimator.estimate("latte") is None

    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        assert await estimator_with(handler).estimate("latte") is None

    @pytest.mark.parametrize("content", ["about 100mg", "-5", ""])
    async def test_unusable_reply(self, content):
        estimator = estimator_with(lambda request: httpx.Response(200, json=chat_reply(content)))
        assert await estimator.estimate("latte") is None

    async def test_malformed_body(self):
        estimator = estimator_with(lambda request: httpx.Response(200, json={"unexpected": True}))
        assert await estimator.estimate("latte") is None
