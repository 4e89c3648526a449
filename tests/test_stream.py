import asyncio
import json

import httpx
import pytest

from fakes import BASE_URL, FakeServer, frame, stream_response
from taskstream.models.events import EventKind
from taskstream.transport.http import HttpClient
from taskstream.transport.stream import StreamState, StreamTransport

PATH = "/tasks/execute"


class Recorder:
    def __init__(self):
        self.events = []
        self.opened = 0
        self.closed = 0
        self.errors = []

    def handlers(self, *kinds):
        return {kind: (lambda data, kind=kind: self.events.append((kind, data))) for kind in kinds}

    def on_open(self):
        self.opened += 1

    def on_close(self):
        self.closed += 1

    def on_error(self, error):
        self.errors.append(error)


def _open(server: FakeServer, recorder: Recorder, *kinds, body=None):
    transport = StreamTransport(HttpClient(base_url=BASE_URL, token="t", transport=server.transport))
    return transport.open(
        PATH, body or {"query": "q"}, recorder.handlers(*(kinds or tuple(EventKind))),
        on_open=recorder.on_open, on_error=recorder.on_error, on_close=recorder.on_close,
    )


@pytest.mark.asyncio
async def test_events_delivered_in_arrival_order(server):
    server.add("POST", PATH, lambda _r: stream_response(
        frame("text_chunk", {"text": "a"}) + frame("text_chunk", {"text": "b"}),
        'event: text_chunk\ndata: {"text": ',
        '"c"}\n\n',
        frame("message_end", {"answer": "abc"}),
    ))
    recorder = Recorder()
    handle = _open(server, recorder)
    assert handle.state is StreamState.OPENING
    await handle.wait()

    assert [d for _k, d in recorder.events] == [{"text": "a"}, {"text": "b"}, {"text": "c"}, {"answer": "abc"}]
    assert recorder.opened == 1 and recorder.closed == 1 and recorder.errors == []
    assert handle.state is StreamState.CLOSED
    assert handle.events_dispatched == 4


@pytest.mark.asyncio
async def test_request_carries_body_and_auth(server):
    server.add("POST", PATH, lambda _r: stream_response(""))
    handle = _open(server, Recorder(), body={"task_type": "geometry", "query": "box"})
    await handle.wait()
    request = server.calls[0]
    assert request.headers["Authorization"] == "Bearer t"
    assert server.bodies("POST", PATH) == [{"task_type": "geometry", "query": "box"}]


@pytest.mark.asyncio
async def test_non_success_status_fails_without_retry(server):
    server.add("POST", PATH, lambda _r: httpx.Response(503, text="overloaded"))
    recorder = Recorder()
    handle = _open(server, recorder)
    await handle.wait()

    assert server.count("POST", PATH) == 1
    assert recorder.opened == 0 and recorder.closed == 0
    assert len(recorder.errors) == 1
    assert recorder.errors[0].status_code == 503
    assert handle.error is recorder.errors[0]
    assert handle.state is StreamState.CLOSED


@pytest.mark.asyncio
async def test_mid_stream_network_error_reported_once(server):
    async def broken_body():
        yield frame("text_chunk", {"text": "partial"}).encode()
        raise httpx.ReadError("connection reset")

    server.add("POST", PATH, lambda _r: httpx.Response(200, content=broken_body()))
    recorder = Recorder()
    handle = _open(server, recorder)
    await handle.wait()

    assert recorder.events == [(EventKind.TEXT_CHUNK, {"text": "partial"})]
    assert recorder.opened == 1
    assert len(recorder.errors) == 1
    assert recorder.closed == 0


@pytest.mark.asyncio
async def test_connection_error_before_response(server):
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    server.add("POST", PATH, refuse)
    recorder = Recorder()
    handle = _open(server, recorder)
    await handle.wait()
    assert len(recorder.errors) == 1
    assert recorder.opened == 0


@pytest.mark.asyncio
async def test_cancel_after_n_events_stops_buffered_events(server):
    server.add("POST", PATH, lambda _r: stream_response(
        frame("text_chunk", {"text": "1"}) + frame("text_chunk", {"text": "2"}) + frame("text_chunk", {"text": "3"}),
    ))
    recorder = Recorder()
    holder = {}

    def cancel_on_first(data):
        recorder.events.append(data)
        holder["handle"].cancel()

    transport = StreamTransport(HttpClient(base_url=BASE_URL, transport=server.transport))
    handle = transport.open(PATH, {}, {EventKind.TEXT_CHUNK: cancel_on_first}, on_close=recorder.on_close)
    holder["handle"] = handle
    await handle.wait()

    assert recorder.events == [{"text": "1"}]
    assert handle.events_dispatched == 1
    assert recorder.closed == 1
    assert handle.state is StreamState.CLOSED


@pytest.mark.asyncio
async def test_cancel_while_waiting_for_next_chunk(server):
    gate = asyncio.Event()
    server.add("POST", PATH, lambda _r: stream_response(
        frame("text_chunk", {"text": "first"}), frame("text_chunk", {"text": "never"}), gate=gate,
    ))
    recorder = Recorder()
    handle = _open(server, recorder)
    while not recorder.events:
        await asyncio.sleep(0.01)

    handle.cancel()
    assert handle.state is StreamState.CLOSING
    await handle.wait()
    gate.set()

    assert recorder.events == [(EventKind.TEXT_CHUNK, {"text": "first"})]
    assert recorder.closed == 1 and recorder.errors == []
    assert handle.state is StreamState.CLOSED


@pytest.mark.asyncio
async def test_cancel_while_opening_suppresses_open_hook(server):
    release = asyncio.Event()

    async def slow(_request):
        await release.wait()
        return stream_response(frame("text_chunk", {"text": "late"}))

    server.add("POST", PATH, slow)
    recorder = Recorder()
    handle = _open(server, recorder)
    await asyncio.sleep(0.01)
    assert handle.state is StreamState.OPENING

    handle.cancel()
    release.set()
    await handle.wait()

    assert recorder.opened == 0
    assert recorder.events == []
    assert recorder.closed == 1


@pytest.mark.asyncio
async def test_cancel_is_idempotent_and_safe_after_completion(server):
    server.add("POST", PATH, lambda _r: stream_response(frame("text_chunk", {"text": "x"})))
    recorder = Recorder()
    handle = _open(server, recorder)
    await handle.wait()

    handle.cancel()
    handle.cancel()
    StreamTransport.cancel(handle)
    StreamTransport.cancel(None)
    assert handle.state is StreamState.CLOSED
    assert recorder.closed == 1


@pytest.mark.asyncio
async def test_cancel_before_loop_starts(server):
    server.add("POST", PATH, lambda _r: stream_response(frame("text_chunk", {"text": "x"})))
    recorder = Recorder()
    handle = _open(server, recorder)
    handle.cancel()
    await handle.wait()
    assert server.calls == []
    assert recorder.opened == 0 and recorder.closed == 1


@pytest.mark.asyncio
async def test_malformed_frames_surface_as_diagnostics(server):
    server.add("POST", PATH, lambda _r: stream_response(
        'event: text_chunk\nTRACE something\ndata: {"text": "x"}\n\n',
        frame("text_chunk", {"text": "ok"}),
        frame("workflow_finished", {}),
    ))
    recorder = Recorder()
    handle = _open(server, recorder)
    await handle.wait()
    assert recorder.events == [(EventKind.TEXT_CHUNK, {"text": "ok"})]
    assert [d.kind for d in handle.diagnostics] == ["malformed_frame"]
    assert recorder.closed == 1


@pytest.mark.asyncio
async def test_independent_sessions_share_no_state(server):
    server.add("POST", PATH, lambda r: stream_response(
        'event: text_chunk\ndata: {"text": "',
        json.loads(r.content)["q"] + '"}\n\n',
    ))
    first, second = Recorder(), Recorder()
    h1 = _open(server, first, body={"q": "one"})
    h2 = _open(server, second, body={"q": "two"})
    await asyncio.gather(h1.wait(), h2.wait())
    assert first.events == [(EventKind.TEXT_CHUNK, {"text": "one"})]
    assert second.events == [(EventKind.TEXT_CHUNK, {"text": "two"})]
