import httpx
import pytest

from fakes import BASE_URL
from taskstream.conversations import ConversationsAPI
from taskstream.errors import TaskStreamError
from taskstream.models.task import TaskType
from taskstream.tasks import TasksAPI, build_execute_body
from taskstream.transport.http import HttpClient


@pytest.fixture
def http(server):
    return HttpClient(base_url=BASE_URL + "/", token="tok", transport=server.transport)


def test_execute_body_defaults():
    body = build_execute_body("optimize", "tune", "c-1", "t-1")
    assert body == {
        "task_type": "optimize",
        "query": "tune",
        "conversation_id": "c-1",
        "task_id": "t-1",
        "user": "anonymous",
        "files": [],
        "response_mode": "streaming",
    }
    with_file = build_execute_body("geometry", "q", "c", "t", file_url="/in.step", user="u")
    assert with_file["file_url"] == "/in.step"
    assert with_file["user"] == "u"


@pytest.mark.asyncio
async def test_envelope_is_unwrapped_and_auth_sent(server, http):
    server.add("POST", "/conversation/c-1", {"status": "success", "data": {"conversation_id": "c-1", "tasks": []}})
    assert await ConversationsAPI(http).get("c-1") == {"conversation_id": "c-1", "tasks": []}
    assert server.calls[0].headers["Authorization"] == "Bearer tok"
    assert http.base_url == BASE_URL


@pytest.mark.asyncio
async def test_error_status_raises(server, http):
    server.add("GET", "/tasks/optimize/queue_length", httpx.Response(503, text="maintenance"))
    with pytest.raises(TaskStreamError) as exc_info:
        await TasksAPI(http).queue_length()
    assert exc_info.value.code == "http_error"
    assert exc_info.value.details == {"status_code": 503}


@pytest.mark.asyncio
async def test_token_can_be_changed(server, http):
    server.add("GET", "/tasks/optimize/queue_length", {"length": 1, "running": 0})
    http.set_token(None)
    status = await TasksAPI(http).queue_length()
    assert status.busy
    assert "Authorization" not in server.calls[0].headers


@pytest.mark.asyncio
async def test_user_history(server, http):
    server.add("GET", "/chat/history", {"history": [{"task_id": "t-1"}]})
    assert await ConversationsAPI(http).history("u-1") == [{"task_id": "t-1"}]
    assert server.calls[0].url.params["user_id"] == "u-1"


@pytest.mark.asyncio
async def test_task_history_marks_finished_entries_final(server, http):
    server.add("GET", "/chat/task", {"message": [
        {"id": 1, "role": "user", "content": "q"},
        {"id": 2, "role": "assistant", "content": "a", "status": "in_progress"},
    ]})
    user, agent = await TasksAPI(http).history("t-1")
    assert user.finalized
    assert not agent.finalized and agent.in_progress


@pytest.mark.asyncio
async def test_task_create_coerces_numeric_ids(server, http):
    server.add("POST", "/tasks", {"task_id": 17, "status": "running-ish"})
    task = await TasksAPI(http).create("c-1", TaskType.RETRIEVAL)
    assert task.task_id == "17"
    assert task.type is TaskType.RETRIEVAL
    assert task.status.value == "pending"


@pytest.mark.asyncio
async def test_deletes(server, http):
    server.add("DELETE", "/chat/message/t-1", httpx.Response(204))
    server.add("DELETE", "/chat/history/t-1", {"status": "success", "data": {"deleted": 3}})
    server.add("DELETE", "/conversation/c-1", {"ok": True})
    tasks = TasksAPI(http)

    assert await tasks.delete("t-1") is None
    assert await tasks.delete_history("t-1") == {"deleted": 3}
    assert await ConversationsAPI(http).delete("c-1") == {"ok": True}


@pytest.mark.asyncio
async def test_submit_optimization_params(server, http):
    server.add("POST", "/tasks/optimize/params", {"accepted": True})
    params = {"Upper_tube_len": {"min": 100, "max": 300, "initial_value": 200}}
    assert await TasksAPI(http).submit_optimization_params("c-1", "t-1", params) == {"accepted": True}
    assert server.bodies("POST", "/tasks/optimize/params") == [
        {"conversation_id": "c-1", "task_id": "t-1", "params": params},
    ]
