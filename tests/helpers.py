"""Scripted stand-ins for execution contexts and canned tool replies."""

import asyncio
import json

from track_extractor.media.context import ContextMessage, MessageType, RawFile, ToolKind

CLOSE = None  # closes the message stream without a terminal message


def stdout_json(document) -> list[ContextMessage]:
    return [
        ContextMessage(MessageType.STDERR, "ffprobe version n6.1"),
        ContextMessage(MessageType.STDOUT, json.dumps(document)),
        ContextMessage(MessageType.DONE, []),
    ]


def done_with(*files: RawFile) -> list[ContextMessage]:
    return [
        ContextMessage(MessageType.STDERR, "Press [q] to stop"),
        ContextMessage(MessageType.DONE, list(files)),
    ]


def error(reason: str = "exit status 1") -> list[ContextMessage]:
    return [
        ContextMessage(MessageType.STDERR, "Could not write header"),
        ContextMessage(MessageType.ERROR, reason),
    ]


def probe_streams(*streams: dict) -> dict:
    return {"streams": list(streams), "format": {"format_name": "matroska,webm"}}


def stream(index, codec_type, codec_name, language=None, title=None) -> dict:
    entry = {"index": index, "codec_type": codec_type, "codec_name": codec_name}
    tags = {}
    if language:
        tags["language"] = language
    if title:
        tags["title"] = title
    if tags:
        entry["tags"] = tags
    return entry


class FakeContext:
    """Scripted execution context; replies to the run request with canned messages."""

    def __init__(self, toolbox, kind, invocation_id):
        self.toolbox = toolbox
        self.kind = kind
        self.invocation_id = invocation_id
        self.request = None
        self.started = False
        self.terminated = False
        self._queue: asyncio.Queue = asyncio.Queue()

    async def start(self):
        self.started = True
        self.toolbox.live += 1
        self.toolbox.max_live = max(self.toolbox.max_live, self.toolbox.live)
        await self._queue.put(ContextMessage(MessageType.READY))

    async def post(self, request):
        self.request = request
        self.toolbox.requests.append((self.kind, list(request.arguments)))
        for message in self.toolbox.responder(self.kind, list(request.arguments)):
            await self._queue.put(message)

    async def messages(self):
        while True:
            message = await self._queue.get()
            if message is CLOSE:
                return
            yield message
            if message.type in (MessageType.DONE, MessageType.ERROR):
                return

    async def terminate(self):
        if self.started and not self.terminated:
            self.toolbox.live -= 1
        self.terminated = True


class FakeToolbox:
    """Context factory recording every context it hands out."""

    def __init__(self, responder=None):
        self.responder = responder or (lambda kind, args: [])
        self.contexts: list[FakeContext] = []
        self.requests: list[tuple[ToolKind, list[str]]] = []
        self.live = 0
        self.max_live = 0

    def __call__(self, kind, invocation_id):
        context = FakeContext(self, kind, invocation_id)
        self.contexts.append(context)
        return context

    def extract_requests(self) -> list[list[str]]:
        return [args for kind, args in self.requests if kind is ToolKind.EXTRACT]

