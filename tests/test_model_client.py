"""Tests for the LLM action protocol: decoding and retry policy."""

import asyncio
import json

import httpx
import pytest

from agentic_repo_agent.model_client import (
    DoneAction,
    Message,
    ModelClientError,
    OpenAIActionClient,
    PlanAction,
    ProtocolError,
    ToolAction,
    TransportError,
    TruncatedResponseError,
    decode_action,
    parse_rate_limit_wait,
)


def completion(content, finish_reason="stop"):
    return {"choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": finish_reason}]}


def make_client(handler, **kwargs):
    waits = []

    async def fake_sleep(seconds):
        waits.append(seconds)

    client = OpenAIActionClient(
        api_key="sk-test",
        system_prompt="SYSTEM",
        model=kwargs.pop("model", "gpt-4o"),
        transport=httpx.MockTransport(handler),
        sleep=fake_sleep,
        **kwargs,
    )
    return client, waits


MESSAGES = [Message(role="user", content="GOAL: test")]


class TestDecodeAction:
    """Exactly one of plan / tool / done."""

    def test_plan(self):
        action = decode_action('{"plan": ["a", "b"]}')
        assert action == PlanAction(steps=["a", "b"])

    def test_tool(self):
        action = decode_action('{"tool": "list_files", "args": {"dir": "."}}')
        assert action == ToolAction(tool="list_files", args={"dir": "."})

    def test_done_defaults_result_to_empty(self):
        assert decode_action('{"done": true}') == DoneAction(result="")

    def test_done_with_result(self):
        assert decode_action('{"done": true, "result": "ok"}').result == "ok"

    @pytest.mark.parametrize("payload", [
        '{"plan": ["a"], "tool": "x", "args": {}}',
        '{"tool": "x", "args": {}, "done": true}',
        '{"plan": ["a"], "done": true}',
        '{}',
        '{"thoughts": "hmm"}',
    ])
    def test_zero_or_multiple_shapes_rejected(self, payload):
        with pytest.raises(ProtocolError):
            decode_action(payload)

    @pytest.mark.parametrize("payload", [
        '{"plan": "do stuff"}',
        '{"plan": []}',
        '{"plan": [1, 2]}',
        '{"tool": "", "args": {}}',
        '{"tool": "x"}',
        '{"tool": "x", "args": []}',
        '{"done": false}',
        '["plan"]',
    ])
    def test_malformed_shapes_rejected(self, payload):
        with pytest.raises(ProtocolError):
            decode_action(payload)

    def test_invalid_json(self):
        with pytest.raises(ProtocolError):
            decode_action("not json")

    def test_long_unterminated_json_is_truncation(self):
        content = '{"tool": "write_file", "args": {"content": "' + "x" * 2000
        with pytest.raises(TruncatedResponseError):
            decode_action(content)

    def test_round_trip_of_tool_action(self):
        action = ToolAction(tool="git_commit", args={"message": "m"})
        assert decode_action(action.to_json()) == action


class TestRateLimitParsing:

    def test_seconds(self):
        assert parse_rate_limit_wait("Please try again in 1.5s.") == 1.5

    def test_milliseconds(self):
        assert parse_rate_limit_wait("Please try again in 300ms.") == pytest.approx(0.3)

    def test_default(self):
        assert parse_rate_limit_wait("slow down") == 20.0


class TestRequestShape:

    def test_request_is_deterministic_json_mode(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json=completion('{"done": true, "result": "r"}'))

        client, _ = make_client(handler)
        action = asyncio.run(client.request_action(MESSAGES))

        assert action == DoneAction(result="r")
        body = seen["body"]
        assert body["temperature"] == 0
        assert body["response_format"] == {"type": "json_object"}
        assert body["max_tokens"] == 16384
        assert body["messages"][0] == {"role": "system", "content": "SYSTEM"}
        assert body["messages"][1] == {"role": "user", "content": "GOAL: test"}
        assert seen["auth"] == "Bearer sk-test"

    def test_missing_key_rejected(self):
        with pytest.raises(ModelClientError):
            OpenAIActionClient(api_key="", system_prompt="s", model="m")


class TestRetryPolicy:

    def test_404_falls_back_to_secondary_model(self):
        models = []

        def handler(request):
            model = json.loads(request.content)["model"]
            models.append(model)
            if model == "gpt-4o":
                return httpx.Response(404, json={"error": {"message": "not found"}})
            return httpx.Response(200, json=completion('{"plan": ["x"]}'))

        client, waits = make_client(handler)
        action = asyncio.run(client.request_action(MESSAGES))

        assert isinstance(action, PlanAction)
        assert models == ["gpt-4o", "gpt-4o-mini"]
        assert client.last_model == "gpt-4o-mini"
        assert waits == []

    def test_model_not_found_body_falls_back(self):
        def handler(request):
            model = json.loads(request.content)["model"]
            if model == "gpt-4o":
                return httpx.Response(400, text='{"error": {"code": "model_not_found"}}')
            return httpx.Response(200, json=completion('{"done": true}'))

        client, _ = make_client(handler)
        assert isinstance(asyncio.run(client.request_action(MESSAGES)), DoneAction)

    def test_429_waits_then_retries(self):
        responses = [
            httpx.Response(429, text="Rate limit reached. Please try again in 2.5s."),
            httpx.Response(200, json=completion('{"done": true}')),
        ]

        client, waits = make_client(lambda request: responses.pop(0))
        action = asyncio.run(client.request_action(MESSAGES))

        assert isinstance(action, DoneAction)
        assert waits == [3.5]

    def test_429_exhausts_retry_budget(self):
        client, waits = make_client(lambda request: httpx.Response(429, text="busy"), max_retries=3)
        with pytest.raises(TransportError):
            asyncio.run(client.request_action(MESSAGES))
        assert waits == [21.0, 21.0]

    def test_network_error_backs_off_exponentially(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            if len(attempts) < 3:
                raise httpx.ConnectError("boom", request=request)
            return httpx.Response(200, json=completion('{"done": true}'))

        client, waits = make_client(handler)
        assert isinstance(asyncio.run(client.request_action(MESSAGES)), DoneAction)
        assert waits == [2.0, 4.0]

    def test_server_error_is_retried(self):
        responses = [httpx.Response(503, text="unavailable"), httpx.Response(200, json=completion('{"done": true}'))]
        client, waits = make_client(lambda request: responses.pop(0))
        assert isinstance(asyncio.run(client.request_action(MESSAGES)), DoneAction)
        assert len(waits) == 1

    def test_length_finish_reason_is_terminal(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(200, json=completion('{"tool": "write_file", "args": {', "length"))

        client, _ = make_client(handler)
        with pytest.raises(TruncatedResponseError):
            asyncio.run(client.request_action(MESSAGES))
        assert len(calls) == 1

    def test_protocol_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(200, json=completion('{"plan": ["a"], "done": true}'))

        client, _ = make_client(handler)
        with pytest.raises(ProtocolError):
            asyncio.run(client.request_action(MESSAGES))
        assert len(calls) == 1

    def test_client_error_is_fatal(self):
        client, _ = make_client(lambda request: httpx.Response(401, text="bad key"))
        with pytest.raises(ModelClientError, match="401"):
            asyncio.run(client.request_action(MESSAGES))

    def test_all_models_missing(self):
        client, _ = make_client(lambda request: httpx.Response(404, text="nope"))
        with pytest.raises(ModelClientError, match="All models failed"):
            asyncio.run(client.request_action(MESSAGES))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
