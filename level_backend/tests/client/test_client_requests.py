"""LevelClient turns commands into HTTP calls and responses into messages."""

import json

import httpx
import pytest

from app.client import post_view as pv
from app.client.requests import LevelClient

POST = {"id": 10, "space_id": 1, "body": "Hi", "state": "OPEN", "reaction_count": 1, "has_reacted": True}


def make_client(handler):
    return LevelClient("http://level.test", "tok", transport=httpx.MockTransport(handler))


async def test_create_reply_success():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "reply": {"id": 5, "post_id": 10, "body": "ok"}, "errors": []})

    async with make_client(handler) as client:
        msg = await client.run(pv.CreateReply(space_id=1, post_id=10, body="ok", file_ids=(3,)))

    assert msg == pv.ReplyCreated(reply=pv.ReplyView(id=5, post_id=10, body="ok"))
    assert seen == {
        "path": "/api/mutations/createReply",
        "auth": "Bearer tok",
        "body": {"space_id": 1, "post_id": 10, "body": "ok", "file_ids": [3]},
    }


async def test_create_reply_validation_errors():
    def handler(request):
        return httpx.Response(200, json={
            "success": False, "reply": None, "errors": [{"attribute": "body", "message": "can't be blank"}],
        })

    async with make_client(handler) as client:
        msg = await client.run(pv.CreateReply(space_id=1, post_id=10, body=" "))

    assert msg == pv.ReplyCreateFailed(errors=(pv.FieldError(attribute="body", message="can't be blank"),))


async def test_reaction_saved():
    def handler(request):
        assert request.url.path == "/api/mutations/deletePostReaction"
        return httpx.Response(200, json={"success": True, "post": {**POST, "reaction_count": 0, "has_reacted": False}})

    async with make_client(handler) as client:
        msg = await client.run(pv.SetPostReaction(space_id=1, post_id=10, on=False, request_id="req-1"))

    assert msg == pv.ReactionSaved(request_id="req-1", reaction_count=0, has_reacted=False)


async def test_unauthorized_means_session_expired():
    async with make_client(lambda request: httpx.Response(401, json={"detail": "Session expired"})) as client:
        msg = await client.run(pv.FetchPost(space_id=1, post_id=10))
    assert msg == pv.SessionExpired()


@pytest.mark.parametrize("response", [
    httpx.Response(404, json={"detail": "Post not found", "code": "NOT_FOUND"}),
    httpx.Response(500, text="boom"),
    httpx.Response(200, text="not json"),
])
async def test_failures_become_request_failed(response):
    cmd = pv.ClosePost(space_id=1, post_id=10)
    async with make_client(lambda request: response) as client:
        msg = await client.run(cmd)
    assert msg == pv.RequestFailed(command=cmd)


async def test_transport_error_becomes_request_failed():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    cmd = pv.SetReplyReaction(space_id=1, post_id=10, reply_id=5, on=True, request_id="req-2")
    async with make_client(handler) as client:
        msg = await client.run(cmd)
    assert msg == pv.RequestFailed(command=cmd)


async def test_unsuccessful_state_change_is_request_failed():
    cmd = pv.DeletePost(space_id=1, post_id=10)
    async with make_client(lambda request: httpx.Response(200, json={"success": False, "post": None})) as client:
        msg = await client.run(cmd)
    assert msg == pv.RequestFailed(command=cmd)


async def test_fetch_replies_passes_cursor():
    def handler(request):
        assert request.url.params["before"] == "7"
        return httpx.Response(200, json={"replies": [{"id": 6, "post_id": 10, "body": "x"}], "has_previous_page": False})

    async with make_client(handler) as client:
        msg = await client.run(pv.FetchReplies(space_id=1, post_id=10, before=7))

    assert msg.before == 7
    assert [r.id for r in msg.replies] == [6]
    assert msg.has_previous_page is False


async def test_upload_file_posts_multipart():
    def handler(request):
        assert request.url.path == "/api/spaces/1/files"
        assert b'filename="a.png"' in request.content
        return httpx.Response(200, json={"id": 42, "filename": "a.png", "size": 1, "url": "/static/uploads/x.png"})

    cmd = pv.UploadFile(space_id=1, target=pv.ComposerTarget.REPLY_COMPOSER, client_id="f1", filename="a.png", content=b"x")
    async with make_client(handler) as client:
        msg = await client.run(cmd)

    assert msg == pv.UploadCompleted(
        target=pv.ComposerTarget.REPLY_COMPOSER, client_id="f1", file_id=42, url="/static/uploads/x.png",
    )


async def test_host_commands_not_handled():
    async with make_client(lambda request: httpx.Response(500)) as client:
        assert await client.run(pv.Redirect(url="/login")) is None
        assert await client.run(pv.SubscribeToSpace(space_id=1, post_id=10)) is None


def test_websocket_url():
    client = LevelClient("https://level.example.com/", "tok")
    assert client.websocket_url(3) == "wss://level.example.com/ws/space/3?token=tok"
