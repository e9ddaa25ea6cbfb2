import logging
from urllib.parse import urlencode, urlsplit, urlunsplit

import httpx

from app.client.post_view import (
    ClosePost,
    Command,
    CreateReply,
    DeletePost,
    DeleteReply,
    FetchPost,
    FetchReplies,
    FieldError,
    Msg,
    PostData,
    PostFetched,
    PostStateChanged,
    PostUpdated,
    PostUpdateFailed,
    ReactionSaved,
    ReopenPost,
    RepliesFetched,
    ReplyCreated,
    ReplyCreateFailed,
    ReplyRemoved,
    ReplyView,
    RequestFailed,
    SessionExpired,
    SetPostReaction,
    SetReplyReaction,
    UpdatePost,
    UploadCompleted,
    UploadFile,
)

logger = logging.getLogger("level.client")


class SessionExpiredError(Exception):
    pass


def _errors(payload: dict) -> tuple[FieldError, ...]:
    return tuple(FieldError.model_validate(e) for e in payload.get("errors") or [])


class LevelClient:
    """Runs post view commands against the HTTP API.

    Subscription and redirect commands belong to the host (it owns the
    websocket and the page), so ``run`` returns ``None`` for them.
    """

    def __init__(self, base_url: str, token: str, *, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=httpx.Timeout(timeout, connect=5.0),
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    def websocket_url(self, space_id: int) -> str:
        parts = urlsplit(self.base_url)
        scheme = "wss" if parts.scheme == "https" else "ws"
        query = urlencode({"token": self.token})
        return urlunsplit((scheme, parts.netloc, f"{parts.path}/ws/space/{space_id}", query, ""))

    async def _send(self, method: str, url: str, **kwargs) -> dict:
        resp = await self._client.request(method, url, **kwargs)
        if resp.status_code == 401:
            raise SessionExpiredError()
        resp.raise_for_status()
        return resp.json()

    async def mutate(self, name: str, args: dict) -> dict:
        return await self._send("POST", f"/api/mutations/{name}", json=args)

    async def run(self, command: Command) -> Msg | None:
        handler = getattr(self, f"_run_{type(command).__name__}", None)
        if handler is None:
            return None
        try:
            return await handler(command)
        except SessionExpiredError:
            return SessionExpired()
        except (httpx.HTTPError, ValueError) as e:
            # failures are absorbed; the view rolls back what it can
            logger.info("command %s failed: %s", type(command).__name__, e)
            return RequestFailed(command=command)

    async def _run_CreateReply(self, cmd: CreateReply) -> Msg:
        payload = await self.mutate("createReply", {
            "space_id": cmd.space_id,
            "post_id": cmd.post_id,
            "body": cmd.body,
            "file_ids": list(cmd.file_ids),
        })
        if payload.get("success"):
            return ReplyCreated(reply=ReplyView.model_validate(payload["reply"]))
        return ReplyCreateFailed(errors=_errors(payload))

    async def _run_UpdatePost(self, cmd: UpdatePost) -> Msg:
        payload = await self.mutate("updatePost", {"space_id": cmd.space_id, "post_id": cmd.post_id, "body": cmd.body})
        if payload.get("success"):
            return PostUpdated(post=PostData.model_validate(payload["post"]))
        return PostUpdateFailed(errors=_errors(payload))

    async def _change_state(self, name: str, cmd) -> Msg:
        payload = await self.mutate(name, {"space_id": cmd.space_id, "post_id": cmd.post_id})
        if not payload.get("success"):
            return RequestFailed(command=cmd)
        return PostStateChanged(post=PostData.model_validate(payload["post"]))

    async def _run_ClosePost(self, cmd: ClosePost) -> Msg:
        return await self._change_state("closePost", cmd)

    async def _run_ReopenPost(self, cmd: ReopenPost) -> Msg:
        return await self._change_state("reopenPost", cmd)

    async def _run_DeletePost(self, cmd: DeletePost) -> Msg:
        return await self._change_state("deletePost", cmd)

    async def _run_DeleteReply(self, cmd: DeleteReply) -> Msg:
        payload = await self.mutate("deleteReply", {
            "space_id": cmd.space_id, "post_id": cmd.post_id, "reply_id": cmd.reply_id,
        })
        if not payload.get("success"):
            return RequestFailed(command=cmd)
        return ReplyRemoved(reply_id=cmd.reply_id)

    async def _run_SetPostReaction(self, cmd: SetPostReaction) -> Msg:
        name = "createPostReaction" if cmd.on else "deletePostReaction"
        payload = await self.mutate(name, {"space_id": cmd.space_id, "post_id": cmd.post_id})
        if not payload.get("success"):
            return RequestFailed(command=cmd)
        post = payload["post"]
        return ReactionSaved(request_id=cmd.request_id, reaction_count=post["reaction_count"], has_reacted=post["has_reacted"])

    async def _run_SetReplyReaction(self, cmd: SetReplyReaction) -> Msg:
        name = "createReplyReaction" if cmd.on else "deleteReplyReaction"
        payload = await self.mutate(name, {"space_id": cmd.space_id, "post_id": cmd.post_id, "reply_id": cmd.reply_id})
        if not payload.get("success"):
            return RequestFailed(command=cmd)
        reply = payload["reply"]
        return ReactionSaved(request_id=cmd.request_id, reaction_count=reply["reaction_count"], has_reacted=reply["has_reacted"])

    async def _run_FetchReplies(self, cmd: FetchReplies) -> Msg:
        params = {"before": cmd.before} if cmd.before is not None else {}
        page = await self._send("GET", f"/api/spaces/{cmd.space_id}/posts/{cmd.post_id}/replies", params=params)
        return RepliesFetched(
            replies=tuple(ReplyView.model_validate(r) for r in page["replies"]),
            has_previous_page=page["has_previous_page"],
            before=cmd.before,
        )

    async def _run_FetchPost(self, cmd: FetchPost) -> Msg:
        detail = await self._send("GET", f"/api/spaces/{cmd.space_id}/posts/{cmd.post_id}")
        return PostFetched(post=PostData.model_validate(detail["post"]))

    async def _run_UploadFile(self, cmd: UploadFile) -> Msg:
        files = {"file": (cmd.filename, cmd.content, cmd.content_type or "application/octet-stream")}
        data = await self._send("POST", f"/api/spaces/{cmd.space_id}/files", files=files)
        return UploadCompleted(target=cmd.target, client_id=cmd.client_id, file_id=data["id"], url=data["url"])
