"""State and update logic for a single post as the client shows it.

``update(msg, view)`` takes an incoming message (a user action, a request
response or a subscription push) and returns the new ``PostView`` together
with the commands to run. Views and messages are immutable; nothing here
performs I/O. ``app.client.requests.LevelClient`` runs the commands and
turns their results back into messages.
"""

from enum import Enum
from typing import Any, Callable, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class SubscriptionState(str, Enum):
    UNSUBSCRIBED = "UNSUBSCRIBED"
    SUBSCRIBING = "SUBSCRIBING"
    SUBSCRIBED = "SUBSCRIBED"


class UploadStatus(str, Enum):
    UPLOADING = "UPLOADING"
    UPLOADED = "UPLOADED"
    ERROR = "ERROR"


class ComposerTarget(str, Enum):
    POST_EDITOR = "post_editor"
    REPLY_COMPOSER = "reply_composer"


# State

class FieldError(Frozen):
    attribute: str
    message: str


class Author(Frozen):
    id: int
    first_name: str = ""
    last_name: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or "Someone"


class Attachment(Frozen):
    id: int
    filename: str
    url: str
    content_type: Optional[str] = None


class Upload(Frozen):
    client_id: str
    filename: str
    status: UploadStatus = UploadStatus.UPLOADING
    percent: int = 0
    file_id: Optional[int] = None
    url: Optional[str] = None


class Composer(Frozen):
    body: str = ""
    is_expanded: bool = False
    is_submitting: bool = False
    files: Tuple[Upload, ...] = ()
    errors: Tuple[FieldError, ...] = ()

    @property
    def is_uploading(self) -> bool:
        return any(f.status == UploadStatus.UPLOADING for f in self.files)

    @property
    def file_ids(self) -> list[int]:
        return [f.file_id for f in self.files if f.status == UploadStatus.UPLOADED and f.file_id is not None]

    @property
    def is_unsubmittable(self) -> bool:
        return not self.body.strip() or self.is_uploading or self.is_submitting

    @property
    def is_blank(self) -> bool:
        return not self.body.strip() and not self.files


class PostData(Frozen):
    id: int
    space_id: int
    body: str
    state: str = "OPEN"
    author: Optional[Author] = None
    files: Tuple[Attachment, ...] = ()
    reaction_count: int = 0
    has_reacted: bool = False
    can_edit: bool = False


class ReplyView(Frozen):
    id: int
    post_id: int
    body: str
    author: Optional[Author] = None
    files: Tuple[Attachment, ...] = ()
    reaction_count: int = 0
    has_reacted: bool = False
    can_edit: bool = False


class PendingReaction(Frozen):
    target: str  # "post" | "reply"
    target_id: int
    previous_count: int
    previous_has_reacted: bool


class PostView(Frozen):
    post: PostData
    replies: Tuple[ReplyView, ...] = ()
    has_previous_page: bool = False
    is_loading_previous: bool = False
    post_editor: Composer = Composer()
    reply_composer: Composer = Composer()
    is_checked: bool = False
    subscription: SubscriptionState = SubscriptionState.UNSUBSCRIBED
    pending: dict[str, PendingReaction] = {}
    request_counter: int = 0

    @property
    def space_id(self) -> int:
        return self.post.space_id

    @property
    def oldest_reply_id(self) -> Optional[int]:
        return self.replies[0].id if self.replies else None

    def composer(self, target: ComposerTarget) -> Composer:
        return self.post_editor if target == ComposerTarget.POST_EDITOR else self.reply_composer


# Commands

class Command(Frozen):
    pass


class CreateReply(Command):
    space_id: int
    post_id: int
    body: str
    file_ids: Tuple[int, ...] = ()


class UpdatePost(Command):
    space_id: int
    post_id: int
    body: str


class ClosePost(Command):
    space_id: int
    post_id: int


class ReopenPost(Command):
    space_id: int
    post_id: int


class DeletePost(Command):
    space_id: int
    post_id: int


class DeleteReply(Command):
    space_id: int
    post_id: int
    reply_id: int


class SetPostReaction(Command):
    space_id: int
    post_id: int
    on: bool
    request_id: str


class SetReplyReaction(Command):
    space_id: int
    post_id: int
    reply_id: int
    on: bool
    request_id: str


class FetchReplies(Command):
    space_id: int
    post_id: int
    before: Optional[int] = None


class FetchPost(Command):
    space_id: int
    post_id: int


class UploadFile(Command):
    space_id: int
    target: ComposerTarget
    client_id: str
    filename: str
    content_type: Optional[str] = None
    content: bytes = b""


class SubscribeToSpace(Command):
    space_id: int
    post_id: int


class UnsubscribeFromSpace(Command):
    space_id: int
    post_id: int


class Redirect(Command):
    url: str


# Messages

class Msg(Frozen):
    pass


class EditPostClicked(Msg):
    pass


class PostEditorBodyChanged(Msg):
    body: str


class PostEditorSubmitted(Msg):
    pass


class PostEditorCancelled(Msg):
    pass


class PostUpdated(Msg):
    post: PostData


class PostUpdateFailed(Msg):
    errors: Tuple[FieldError, ...] = ()


class ReplyComposerExpanded(Msg):
    pass


class ReplyComposerCollapsed(Msg):
    pass


class ReplyBodyChanged(Msg):
    body: str


class ReplySubmitted(Msg):
    pass


class ReplyCancelled(Msg):
    pass


class ReplyCreated(Msg):
    reply: ReplyView


class ReplyCreateFailed(Msg):
    errors: Tuple[FieldError, ...] = ()


class FileAttached(Msg):
    target: ComposerTarget
    client_id: str
    filename: str
    content_type: Optional[str] = None
    content: bytes = b""


class UploadProgressed(Msg):
    target: ComposerTarget
    client_id: str
    percent: int


class UploadCompleted(Msg):
    target: ComposerTarget
    client_id: str
    file_id: int
    url: str


class UploadFailed(Msg):
    target: ComposerTarget
    client_id: str


class FileRemoved(Msg):
    target: ComposerTarget
    client_id: str


class PostReactionToggled(Msg):
    pass


class ReplyReactionToggled(Msg):
    reply_id: int


class ReactionSaved(Msg):
    request_id: str
    reaction_count: int
    has_reacted: bool


class ReactionFailed(Msg):
    request_id: str


class ClosePostClicked(Msg):
    pass


class ReopenPostClicked(Msg):
    pass


class DeletePostClicked(Msg):
    pass


class PostStateChanged(Msg):
    post: PostData


class DeleteReplyClicked(Msg):
    reply_id: int


class ReplyRemoved(Msg):
    reply_id: int


class PreviousRepliesRequested(Msg):
    pass


class RepliesFetched(Msg):
    replies: Tuple[ReplyView, ...]
    has_previous_page: bool
    before: Optional[int] = None


class PostFetched(Msg):
    post: PostData


class SubscribeRequested(Msg):
    pass


class Subscribed(Msg):
    pass


class UnsubscribeRequested(Msg):
    pass


class SubscriptionEventReceived(Msg):
    event: dict[str, Any]


class CheckToggled(Msg):
    pass


class SessionExpired(Msg):
    pass


class RequestFailed(Msg):
    command: Any


# Construction

def init(post: dict, replies_page: dict | None = None) -> PostView:
    page = replies_page or {}
    return PostView(
        post=PostData.model_validate(post),
        replies=tuple(ReplyView.model_validate(r) for r in page.get("replies", [])),
        has_previous_page=bool(page.get("has_previous_page", False)),
    )


# Helpers

def _set_composer(view: PostView, target: ComposerTarget, composer: Composer) -> PostView:
    return view.model_copy(update={target.value: composer})


def _merge_replies(existing: Tuple[ReplyView, ...], incoming: Tuple[ReplyView, ...]) -> Tuple[ReplyView, ...]:
    by_id = {r.id: r for r in existing}
    for r in incoming:
        by_id[r.id] = r
    return tuple(by_id[i] for i in sorted(by_id))


def _replace_reply(view: PostView, reply_id: int, **changes) -> PostView:
    replies = tuple(r.model_copy(update=changes) if r.id == reply_id else r for r in view.replies)
    return view.model_copy(update={"replies": replies})


def _find_reply(view: PostView, reply_id: int) -> Optional[ReplyView]:
    return next((r for r in view.replies if r.id == reply_id), None)


def _is_pending(view: PostView, target: str, target_id: int) -> bool:
    return any(p.target == target and p.target_id == target_id for p in view.pending.values())


def _next_request_id(view: PostView) -> tuple[PostView, str]:
    counter = view.request_counter + 1
    return view.model_copy(update={"request_counter": counter}), f"req-{counter}"


def _update_upload(composer: Composer, client_id: str, **changes) -> Composer:
    files = tuple(f.model_copy(update=changes) if f.client_id == client_id else f for f in composer.files)
    return composer.model_copy(update={"files": files})


def _file_link(filename: str, url: str) -> str:
    return f"[{filename}]({url})"


# Post editor

def _edit_post_clicked(msg, view):
    if not view.post.can_edit or view.post.state == "DELETED":
        return view, []
    editor = Composer(body=view.post.body, is_expanded=True)
    return view.model_copy(update={"post_editor": editor}), []


def _post_editor_body_changed(msg, view):
    return view.model_copy(update={"post_editor": view.post_editor.model_copy(update={"body": msg.body})}), []


def _post_editor_submitted(msg, view):
    editor = view.post_editor
    if not editor.is_expanded or editor.is_unsubmittable:
        return view, []
    view = view.model_copy(update={"post_editor": editor.model_copy(update={"is_submitting": True, "errors": ()})})
    return view, [UpdatePost(space_id=view.space_id, post_id=view.post.id, body=editor.body)]


def _post_editor_cancelled(msg, view):
    return view.model_copy(update={"post_editor": Composer()}), []


def _post_updated(msg, view):
    if msg.post.id != view.post.id:
        return view, []
    return view.model_copy(update={"post": msg.post, "post_editor": Composer()}), []


def _post_update_failed(msg, view):
    editor = view.post_editor.model_copy(update={"is_submitting": False, "errors": msg.errors})
    return view.model_copy(update={"post_editor": editor}), []


# Reply composer

def _reply_composer_expanded(msg, view):
    if view.post.state == "DELETED":
        return view, []
    return view.model_copy(update={"reply_composer": view.reply_composer.model_copy(update={"is_expanded": True})}), []


def _reply_composer_collapsed(msg, view):
    composer = view.reply_composer
    # keep unsent text and attachments on screen
    if not composer.is_blank or composer.is_submitting:
        return view, []
    return view.model_copy(update={"reply_composer": composer.model_copy(update={"is_expanded": False})}), []


def _reply_body_changed(msg, view):
    return view.model_copy(update={"reply_composer": view.reply_composer.model_copy(update={"body": msg.body})}), []


def _reply_submitted(msg, view):
    composer = view.reply_composer
    if composer.is_unsubmittable or view.post.state == "DELETED":
        return view, []
    view = view.model_copy(update={"reply_composer": composer.model_copy(update={"is_submitting": True, "errors": ()})})
    return view, [CreateReply(
        space_id=view.space_id,
        post_id=view.post.id,
        body=composer.body,
        file_ids=tuple(composer.file_ids),
    )]


def _reply_cancelled(msg, view):
    if view.reply_composer.is_submitting:
        return view, []
    return view.model_copy(update={"reply_composer": Composer()}), []


def _reply_created(msg, view):
    if msg.reply.post_id != view.post.id:
        return view, []
    composer = Composer(is_expanded=view.reply_composer.is_expanded)
    return view.model_copy(update={
        "replies": _merge_replies(view.replies, (msg.reply,)),
        "reply_composer": composer,
    }), []


def _reply_create_failed(msg, view):
    composer = view.reply_composer.model_copy(update={"is_submitting": False, "errors": msg.errors})
    return view.model_copy(update={"reply_composer": composer}), []


# Files

def _file_attached(msg, view):
    composer = view.composer(msg.target)
    # the editor only accepts files while it is open on the post body
    if msg.target == ComposerTarget.POST_EDITOR and not composer.is_expanded:
        return view, []
    if any(f.client_id == msg.client_id for f in composer.files):
        return view, []
    upload = Upload(client_id=msg.client_id, filename=msg.filename)
    composer = composer.model_copy(update={"files": composer.files + (upload,), "is_expanded": True})
    return _set_composer(view, msg.target, composer), [UploadFile(
        space_id=view.space_id,
        target=msg.target,
        client_id=msg.client_id,
        filename=msg.filename,
        content_type=msg.content_type,
        content=msg.content,
    )]


def _upload_progressed(msg, view):
    composer = view.composer(msg.target)
    upload = next((f for f in composer.files if f.client_id == msg.client_id), None)
    if upload is None or upload.status != UploadStatus.UPLOADING:
        return view, []
    percent = max(0, min(100, msg.percent))
    return _set_composer(view, msg.target, _update_upload(composer, msg.client_id, percent=percent)), []


def _upload_completed(msg, view):
    composer = view.composer(msg.target)
    upload = next((f for f in composer.files if f.client_id == msg.client_id), None)
    if upload is None:
        return view, []
    if msg.target == ComposerTarget.POST_EDITOR:
        # the editor cannot attach files, so link the upload from the body
        link = _file_link(upload.filename, msg.url)
        body = f"{composer.body.rstrip()}\n\n{link}" if composer.body.strip() else link
        files = tuple(f for f in composer.files if f.client_id != msg.client_id)
        return _set_composer(view, msg.target, composer.model_copy(update={"body": body, "files": files})), []
    composer = _update_upload(
        composer, msg.client_id,
        status=UploadStatus.UPLOADED, percent=100, file_id=msg.file_id, url=msg.url,
    )
    return _set_composer(view, msg.target, composer), []


def _upload_failed(msg, view):
    composer = view.composer(msg.target)
    return _set_composer(view, msg.target, _update_upload(composer, msg.client_id, status=UploadStatus.ERROR)), []


def _file_removed(msg, view):
    composer = view.composer(msg.target)
    files = tuple(f for f in composer.files if f.client_id != msg.client_id)
    return _set_composer(view, msg.target, composer.model_copy(update={"files": files})), []


# Reactions

def _post_reaction_toggled(msg, view):
    post = view.post
    if post.state == "DELETED" or _is_pending(view, "post", post.id):
        return view, []
    view, request_id = _next_request_id(view)
    on = not post.has_reacted
    pending = dict(view.pending)
    pending[request_id] = PendingReaction(
        target="post",
        target_id=post.id,
        previous_count=post.reaction_count,
        previous_has_reacted=post.has_reacted,
    )
    post = post.model_copy(update={
        "has_reacted": on,
        "reaction_count": max(0, post.reaction_count + (1 if on else -1)),
    })
    view = view.model_copy(update={"post": post, "pending": pending})
    return view, [SetPostReaction(space_id=view.space_id, post_id=post.id, on=on, request_id=request_id)]


def _reply_reaction_toggled(msg, view):
    reply = _find_reply(view, msg.reply_id)
    if reply is None or _is_pending(view, "reply", reply.id):
        return view, []
    view, request_id = _next_request_id(view)
    on = not reply.has_reacted
    pending = dict(view.pending)
    pending[request_id] = PendingReaction(
        target="reply",
        target_id=reply.id,
        previous_count=reply.reaction_count,
        previous_has_reacted=reply.has_reacted,
    )
    view = _replace_reply(
        view, reply.id,
        has_reacted=on,
        reaction_count=max(0, reply.reaction_count + (1 if on else -1)),
    ).model_copy(update={"pending": pending})
    return view, [SetReplyReaction(
        space_id=view.space_id,
        post_id=view.post.id,
        reply_id=reply.id,
        on=on,
        request_id=request_id,
    )]


def _apply_reaction(view: PostView, entry: PendingReaction, count: int, has_reacted: bool) -> PostView:
    if entry.target == "post":
        post = view.post.model_copy(update={"reaction_count": count, "has_reacted": has_reacted})
        return view.model_copy(update={"post": post})
    return _replace_reply(view, entry.target_id, reaction_count=count, has_reacted=has_reacted)


def _settle(view: PostView, request_id: str) -> tuple[PostView, Optional[PendingReaction]]:
    pending = dict(view.pending)
    entry = pending.pop(request_id, None)
    return view.model_copy(update={"pending": pending}), entry


def _reaction_saved(msg, view):
    view, entry = _settle(view, msg.request_id)
    if entry is None:
        return view, []
    return _apply_reaction(view, entry, msg.reaction_count, msg.has_reacted), []


def _reaction_failed(msg, view):
    view, entry = _settle(view, msg.request_id)
    if entry is None:
        return view, []
    return _apply_reaction(view, entry, entry.previous_count, entry.previous_has_reacted), []


# Post lifecycle

def _close_post_clicked(msg, view):
    if view.post.state != "OPEN":
        return view, []
    return view, [ClosePost(space_id=view.space_id, post_id=view.post.id)]


def _reopen_post_clicked(msg, view):
    if view.post.state != "CLOSED":
        return view, []
    return view, [ReopenPost(space_id=view.space_id, post_id=view.post.id)]


def _delete_post_clicked(msg, view):
    if view.post.state == "DELETED":
        return view, []
    return view, [DeletePost(space_id=view.space_id, post_id=view.post.id)]


def _post_state_changed(msg, view):
    if msg.post.id != view.post.id:
        return view, []
    changes: dict[str, Any] = {"post": msg.post}
    if msg.post.state == "DELETED":
        changes["post_editor"] = Composer()
        changes["reply_composer"] = Composer()
    return view.model_copy(update=changes), []


def _delete_reply_clicked(msg, view):
    reply = _find_reply(view, msg.reply_id)
    if reply is None or not reply.can_edit:
        return view, []
    return view, [DeleteReply(space_id=view.space_id, post_id=view.post.id, reply_id=reply.id)]


def _reply_removed(msg, view):
    replies = tuple(r for r in view.replies if r.id != msg.reply_id)
    return view.model_copy(update={"replies": replies}), []


# Pagination

def _previous_replies_requested(msg, view):
    if not view.has_previous_page or view.is_loading_previous:
        return view, []
    view = view.model_copy(update={"is_loading_previous": True})
    return view, [FetchReplies(space_id=view.space_id, post_id=view.post.id, before=view.oldest_reply_id)]


def _replies_fetched(msg, view):
    replies = tuple(r for r in msg.replies if r.post_id == view.post.id)
    changes: dict[str, Any] = {"replies": _merge_replies(view.replies, replies)}
    if msg.before is not None:
        changes["is_loading_previous"] = False
        changes["has_previous_page"] = msg.has_previous_page
    elif not view.replies or (replies and replies[0].id <= view.replies[0].id):
        # a refresh of the newest page reaches back past what we had
        changes["has_previous_page"] = msg.has_previous_page
    return view.model_copy(update=changes), []


def _post_fetched(msg, view):
    if msg.post.id != view.post.id or _is_pending(view, "post", view.post.id):
        return view, []
    return view.model_copy(update={"post": msg.post}), []


# Subscription

def _subscribe_requested(msg, view):
    if view.subscription != SubscriptionState.UNSUBSCRIBED:
        return view, []
    view = view.model_copy(update={"subscription": SubscriptionState.SUBSCRIBING})
    return view, [SubscribeToSpace(space_id=view.space_id, post_id=view.post.id)]


def _subscribed(msg, view):
    if view.subscription != SubscriptionState.SUBSCRIBING:
        return view, []
    return view.model_copy(update={"subscription": SubscriptionState.SUBSCRIBED}), []


def _unsubscribe_requested(msg, view):
    if view.subscription == SubscriptionState.UNSUBSCRIBED:
        return view, []
    view = view.model_copy(update={"subscription": SubscriptionState.UNSUBSCRIBED})
    return view, [UnsubscribeFromSpace(space_id=view.space_id, post_id=view.post.id)]


def _subscription_event_received(msg, view):
    event = msg.event
    if view.subscription != SubscriptionState.SUBSCRIBED or event.get("post_id") != view.post.id:
        return view, []
    kind = event.get("type")
    fetch_post = FetchPost(space_id=view.space_id, post_id=view.post.id)

    if kind in ("reply_created", "reply_updated"):
        return view, [FetchReplies(space_id=view.space_id, post_id=view.post.id)]
    if kind == "reply_deleted":
        if event.get("reply_id") is None:
            return view, []
        return _reply_removed(ReplyRemoved(reply_id=event["reply_id"]), view)
    if kind == "post_updated":
        return view, [fetch_post]
    if kind in ("post_closed", "post_reopened", "post_deleted"):
        state = event.get("state") or {"post_closed": "CLOSED", "post_reopened": "OPEN"}.get(kind, "DELETED")
        return _post_state_changed(PostStateChanged(post=view.post.model_copy(update={"state": state})), view)
    if kind == "post_reactions_updated":
        if _is_pending(view, "post", view.post.id) or "reaction_count" not in event:
            return view, []
        post = view.post.model_copy(update={"reaction_count": event["reaction_count"]})
        return view.model_copy(update={"post": post}), []
    if kind == "reply_reactions_updated":
        reply_id = event.get("reply_id")
        if _find_reply(view, reply_id) is None or _is_pending(view, "reply", reply_id) or "reaction_count" not in event:
            return view, []
        return _replace_reply(view, reply_id, reaction_count=event["reaction_count"]), []
    return view, []


# Misc

def _check_toggled(msg, view):
    return view.model_copy(update={"is_checked": not view.is_checked}), []


def _session_expired(msg, view):
    return view, [Redirect(url="/login")]


def _request_failed(msg, view):
    command = msg.command
    if isinstance(command, CreateReply):
        return view.model_copy(update={
            "reply_composer": view.reply_composer.model_copy(update={"is_submitting": False}),
        }), []
    if isinstance(command, UpdatePost):
        return view.model_copy(update={
            "post_editor": view.post_editor.model_copy(update={"is_submitting": False}),
        }), []
    if isinstance(command, (SetPostReaction, SetReplyReaction)):
        return _reaction_failed(ReactionFailed(request_id=command.request_id), view)
    if isinstance(command, FetchReplies) and command.before is not None:
        return view.model_copy(update={"is_loading_previous": False}), []
    if isinstance(command, UploadFile):
        return _upload_failed(UploadFailed(target=command.target, client_id=command.client_id), view)
    if isinstance(command, SubscribeToSpace):
        return view.model_copy(update={"subscription": SubscriptionState.UNSUBSCRIBED}), []
    return view, []


_HANDLERS: dict[type, Callable] = {
    EditPostClicked: _edit_post_clicked,
    PostEditorBodyChanged: _post_editor_body_changed,
    PostEditorSubmitted: _post_editor_submitted,
    PostEditorCancelled: _post_editor_cancelled,
    PostUpdated: _post_updated,
    PostUpdateFailed: _post_update_failed,
    ReplyComposerExpanded: _reply_composer_expanded,
    ReplyComposerCollapsed: _reply_composer_collapsed,
    ReplyBodyChanged: _reply_body_changed,
    ReplySubmitted: _reply_submitted,
    ReplyCancelled: _reply_cancelled,
    ReplyCreated: _reply_created,
    ReplyCreateFailed: _reply_create_failed,
    FileAttached: _file_attached,
    UploadProgressed: _upload_progressed,
    UploadCompleted: _upload_completed,
    UploadFailed: _upload_failed,
    FileRemoved: _file_removed,
    PostReactionToggled: _post_reaction_toggled,
    ReplyReactionToggled: _reply_reaction_toggled,
    ReactionSaved: _reaction_saved,
    ReactionFailed: _reaction_failed,
    ClosePostClicked: _close_post_clicked,
    ReopenPostClicked: _reopen_post_clicked,
    DeletePostClicked: _delete_post_clicked,
    PostStateChanged: _post_state_changed,
    DeleteReplyClicked: _delete_reply_clicked,
    ReplyRemoved: _reply_removed,
    PreviousRepliesRequested: _previous_replies_requested,
    RepliesFetched: _replies_fetched,
    PostFetched: _post_fetched,
    SubscribeRequested: _subscribe_requested,
    Subscribed: _subscribed,
    UnsubscribeRequested: _unsubscribe_requested,
    SubscriptionEventReceived: _subscription_event_received,
    CheckToggled: _check_toggled,
    SessionExpired: _session_expired,
    RequestFailed: _request_failed,
}


def update(msg: Msg, view: PostView) -> tuple[PostView, list[Command]]:
    handler = _HANDLERS.get(type(msg))
    if handler is None:
        raise TypeError(f"unhandled message {type(msg).__name__}")
    return handler(msg, view)
