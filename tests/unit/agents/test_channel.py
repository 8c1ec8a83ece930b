"""
Tests for the generation channel client and its frame protocol.
"""

import json

import pytest
from websockets.exceptions import ConnectionClosedOK, InvalidURI

from agents.generation.channel import GenerationChannel, read_result
from agents.generation.context import GenerationContext
from api.schemas.question_sets import PositionContext
from core.exceptions import GenerationError


class FakeWebSocket:
    """Minimal websocket connection: queued inbound messages, recorded outbound ones."""

    def __init__(self, messages=None):
        self.messages = list(messages or [])
        self.outbound = []
        self.close_calls = 0

    async def send(self, message):
        self.outbound.append(message)

    async def recv(self):
        if not self.messages:
            raise ConnectionClosedOK(None, None)
        return self.messages.pop(0)

    async def close(self):
        self.close_calls += 1


def connector(ws):
    calls = []

    async def connect(url):
        calls.append(url)
        return ws

    connect.calls = calls
    return connect


class TestGenerationChannel:
    """Test the websocket-backed channel."""

    @pytest.mark.asyncio
    async def test_request_and_frames(self):
        ws = FakeWebSocket([json.dumps({"success": True, "data": {"question": "Q1"}})])
        connect = connector(ws)

        async with GenerationChannel("ws://ai/ws/generate", connect=connect) as channel:
            await channel.send({"jobRole": "Backend Engineer"})
            frames = [frame async for frame in channel.frames()]

        assert connect.calls == ["ws://ai/ws/generate"]
        assert json.loads(ws.outbound[0]) == {"jobRole": "Backend Engineer"}
        assert frames == [{"success": True, "data": {"question": "Q1"}}]
        assert ws.close_calls == 1

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        ws = FakeWebSocket()
        channel = GenerationChannel("ws://ai", connect=connector(ws))
        await channel.open()

        await channel.close()
        await channel.close()

        assert ws.close_calls == 1
        assert channel.closed

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        async def refuse(url):
            raise ConnectionRefusedError("refused")

        channel = GenerationChannel("ws://ai", connect=refuse)
        with pytest.raises(GenerationError, match="Connection to AI service failed"):
            await channel.open()

    @pytest.mark.asyncio
    async def test_invalid_uri(self):
        async def bad_uri(url):
            raise InvalidURI(url, "not a websocket URI")

        with pytest.raises(GenerationError):
            await GenerationChannel("http://ai", connect=bad_uri).open()

    @pytest.mark.asyncio
    async def test_send_before_open(self):
        with pytest.raises(GenerationError, match="not open"):
            await GenerationChannel("ws://ai").send({})

    @pytest.mark.asyncio
    async def test_malformed_frame(self):
        ws = FakeWebSocket(["not json"])
        channel = GenerationChannel("ws://ai", connect=connector(ws))
        await channel.open()

        with pytest.raises(GenerationError, match="Malformed frame"):
            async for _ in channel.frames():
                pass

    @pytest.mark.asyncio
    async def test_non_object_frame(self):
        ws = FakeWebSocket(["[1, 2]"])
        channel = GenerationChannel("ws://ai", connect=connector(ws))
        await channel.open()

        with pytest.raises(GenerationError):
            async for _ in channel.frames():
                pass


class TestReadResult:
    """Test the accepted frame formats."""

    @pytest.mark.asyncio
    async def test_single_question(self, make_channel):
        channel = make_channel([{"success": True, "data": {"question": "What is a deadlock?"}}])
        assert await read_result(channel) == ["What is a deadlock?"]

    @pytest.mark.asyncio
    async def test_question_batch(self, make_channel, frames):
        channel = make_channel([frames["questions"](["A", "B", 3, "C"])])
        assert await read_result(channel) == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_plain_string_data(self, make_channel):
        channel = make_channel([{"success": True, "data": "Describe a hard bug"}])
        assert await read_result(channel) == ["Describe a hard bug"]

    @pytest.mark.asyncio
    async def test_success_false(self, make_channel):
        channel = make_channel([{"success": False, "error": "Quota exceeded"}])
        with pytest.raises(GenerationError, match="Quota exceeded"):
            await read_result(channel)

    @pytest.mark.asyncio
    async def test_success_false_without_message(self, make_channel):
        channel = make_channel([{"success": False}])
        with pytest.raises(GenerationError, match="Failed to generate AI questions"):
            await read_result(channel)

    @pytest.mark.asyncio
    async def test_delta_frames_joined(self, make_channel):
        channel = make_channel([
            {"type": "start"},
            {"type": "delta", "content": "What is "},
            {"type": "delta", "content": "a monad?"},
            {"type": "done"},
        ])
        assert await read_result(channel) == ["What is a monad?"]

    @pytest.mark.asyncio
    async def test_indexed_delta_frames(self, make_channel):
        channel = make_channel([
            {"type": "delta", "content": "Second ", "index": 1},
            {"type": "delta", "content": "First", "index": 0},
            {"type": "delta", "content": "one", "index": 1},
            {"type": "done"},
        ])
        assert await read_result(channel) == ["First", "Second one"]

    @pytest.mark.asyncio
    async def test_done_with_data(self, make_channel):
        channel = make_channel([{"type": "done", "data": {"questions": ["X", "Y"]}}])
        assert await read_result(channel) == ["X", "Y"]

    @pytest.mark.asyncio
    async def test_error_frame(self, make_channel):
        channel = make_channel([{"type": "delta", "content": "Wh"}, {"type": "error", "message": "model overloaded"}])
        with pytest.raises(GenerationError, match="model overloaded"):
            await read_result(channel)

    @pytest.mark.asyncio
    async def test_channel_closed_early(self, make_channel):
        channel = make_channel([{"type": "delta", "content": "Wh"}])
        with pytest.raises(GenerationError, match="closed before completion"):
            await read_result(channel)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("index", ["first", [0], {"i": 0}])
    async def test_malformed_delta_index(self, make_channel, index):
        channel = make_channel([{"type": "delta", "content": "Wh", "index": index}, {"type": "done"}])
        with pytest.raises(GenerationError, match="Malformed delta frame index"):
            await read_result(channel)


class TestGenerationContext:
    """Test request payloads built for the generation service."""

    def test_from_position(self, position):
        context = GenerationContext.from_position(position, ["A", "", "B"])

        assert context.job_title == "Backend Engineer"
        assert context.min_experience == 3
        assert context.previous_questions == ["A", "B"]

    def test_untitled_position(self):
        context = GenerationContext.from_position(PositionContext(id=1), [])
        assert context.job_title == "Position"

    def test_single_question_request(self, position):
        request = GenerationContext.from_position(position, ["A"]).to_request(stream=False)

        assert request == {
            "jobRole": "Backend Engineer",
            "minYearsOfExperience": 3,
            "maxYearsOfExperience": 6,
            "mandatorySkills": ["Python", "PostgreSQL"],
            "optionalSkills": ["Redis"],
            "previousQuestions": ["A"],
            "numberOfQuestions": 1,
            "stream": False,
        }

    def test_library_request(self, position):
        request = GenerationContext.from_position(position, []).to_request(
            number_of_questions=10, company_name="Acme", question_type="behavioral"
        )

        assert request["companyName"] == "Acme"
        assert request["questionType"] == "behavioral"
        assert request["numberOfQuestions"] == 10
        assert "stream" not in request
