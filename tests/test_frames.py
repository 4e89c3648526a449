from fakes import frame
from taskstream.transport.frames import FrameDecoder, RawEvent

STREAM = (
    frame("text_chunk", {"text": "héllo"})
    + ": keep-alive comment\n\n"
    + frame("image_chunk", {"url": "/plot.png", "altText": "收敛曲线"})
    + "\n\n"
    + "event: message_end\ndata: {\"answer\":\ndata: \"done\"}\n\n"
)


def _feed_all(decoder, chunks):
    events = []
    for chunk in chunks:
        events.extend(decoder.feed(chunk))
    return events


def test_whole_stream_decodes_to_events():
    events = FrameDecoder().feed(STREAM)
    assert [e.name for e in events] == ["text_chunk", "image_chunk", "message_end"]
    assert events[0].payload == '{"text": "héllo"}'
    assert events[2].payload == '{"answer":"done"}'
    assert not any(e.malformed for e in events)


def test_chunk_boundary_independence_text():
    whole = FrameDecoder().feed(STREAM)
    one_char = _feed_all(FrameDecoder(), list(STREAM))
    assert one_char == whole


def test_chunk_boundary_independence_bytes():
    whole = FrameDecoder().feed(STREAM)
    data = STREAM.encode("utf-8")
    one_byte = _feed_all(FrameDecoder(), [data[i:i + 1] for i in range(len(data))])
    assert one_byte == whole


def test_default_event_name():
    assert FrameDecoder().feed('data: {"x": 1}\n\n') == [RawEvent("message", '{"x": 1}', False)]


def test_unterminated_frame_is_held_back():
    decoder = FrameDecoder()
    assert decoder.feed('event: text_chunk\ndata: {"text": "a"}\n') == []
    assert decoder.pending.startswith("event: text_chunk")


def test_unterminated_frame_never_emitted_on_its_own():
    decoder = FrameDecoder()
    events = decoder.feed('event: first\ndata: "x"\n')
    events += decoder.feed(frame("second", "y"))
    assert RawEvent("first", '"x"', False) not in events
    assert all(e.name != "first" for e in events)


def test_non_standard_line_marks_frame_malformed():
    events = FrameDecoder().feed('event: text_chunk\nDEBUG: upstream said hi\ndata: {"text": "a"}\n\n')
    assert events == [RawEvent("text_chunk", '{"text": "a"}', True)]


def test_empty_and_comment_frames_are_skipped():
    assert FrameDecoder().feed("\n\n   \n\n:ping\n\n") == []
