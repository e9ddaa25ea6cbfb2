from html import escape
from typing import Optional

from pydantic import BaseModel

from app.client.post_view import (
    Attachment,
    Author,
    Composer,
    ComposerTarget,
    PostView,
    ReplyView,
    UploadStatus,
)

VOID_TAGS = {"input", "img", "br", "hr"}


class Node(BaseModel):
    tag: str
    attrs: dict[str, str] = {}
    children: list["Node"] = []
    text: Optional[str] = None

    def to_html(self) -> str:
        attrs = "".join(f' {k}="{escape(v, quote=True)}"' for k, v in self.attrs.items())
        if self.tag in VOID_TAGS:
            return f"<{self.tag}{attrs}>"
        inner = escape(self.text) if self.text is not None else ""
        inner += "".join(child.to_html() for child in self.children)
        return f"<{self.tag}{attrs}>{inner}</{self.tag}>"


Node.model_rebuild()


def h(tag: str, attrs: dict | None = None, *children: Node, text: str | None = None) -> Node:
    clean = {k: (k if v is True else str(v)) for k, v in (attrs or {}).items() if v is not None and v is not False}
    return Node(tag=tag, attrs=clean, children=[c for c in children if c is not None], text=text)


def render_body(body: str) -> Node:
    paragraphs = [p.strip() for p in body.split("\n\n") if p.strip()]
    return h("div", {"class": "markdown"}, *[h("p", None, text=p) for p in paragraphs])


def render_author(author: Optional[Author]) -> Node:
    name = author.display_name if author else "Someone"
    return h("span", {"class": "author-name"}, text=name)


def render_attachments(files: tuple[Attachment, ...]) -> Optional[Node]:
    if not files:
        return None
    return h("ul", {"class": "attachments"}, *[
        h("li", None, h("a", {"href": f.url, "target": "_blank"}, text=f.filename)) for f in files
    ])


def render_reaction_button(count: int, has_reacted: bool, action: str, disabled: bool = False) -> Node:
    classes = "reaction-button is-reacted" if has_reacted else "reaction-button"
    return h(
        "button",
        {
            "class": classes,
            "data-action": action,
            "aria-pressed": "true" if has_reacted else "false",
            "disabled": disabled,
        },
        text=str(count) if count else "",
    )


def render_state_badge(state: str) -> Optional[Node]:
    if state == "CLOSED":
        return h("span", {"class": "state-badge is-closed"}, text="Resolved")
    if state == "DELETED":
        return h("span", {"class": "state-badge is-deleted"}, text="Deleted")
    return None


def render_uploads(composer: Composer) -> Optional[Node]:
    if not composer.files:
        return None
    items = []
    for upload in composer.files:
        if upload.status == UploadStatus.UPLOADING:
            status = f"{upload.percent}%"
        elif upload.status == UploadStatus.ERROR:
            status = "Upload failed"
        else:
            status = "Uploaded"
        items.append(h(
            "li",
            {"class": f"upload is-{upload.status.value.lower()}", "data-client-id": upload.client_id},
            h("span", {"class": "upload-name"}, text=upload.filename),
            h("span", {"class": "upload-status"}, text=status),
        ))
    return h("ul", {"class": "uploads"}, *items)


def render_errors(composer: Composer) -> Optional[Node]:
    if not composer.errors:
        return None
    return h("ul", {"class": "form-errors"}, *[
        h("li", {"data-attribute": e.attribute}, text=f"{e.attribute} {e.message}") for e in composer.errors
    ])


def render_composer(composer: Composer, target: ComposerTarget, *, placeholder: str, submit_label: str) -> Node:
    return h(
        "form",
        {"class": f"composer {target.value}", "data-target": target.value},
        h("textarea", {"name": "body", "placeholder": placeholder, "disabled": composer.is_submitting}, text=composer.body),
        render_uploads(composer),
        render_errors(composer),
        h("div", {"class": "composer-actions"},
          h("button", {"type": "submit", "class": "button", "disabled": composer.is_unsubmittable}, text=submit_label),
          h("button", {"type": "button", "class": "button-cancel", "data-action": "cancel"}, text="Cancel")),
    )


def render_post_actions(view: PostView) -> Node:
    post = view.post
    actions = [render_reaction_button(
        post.reaction_count, post.has_reacted, "toggle-post-reaction", disabled=post.state == "DELETED",
    )]
    if post.can_edit and post.state != "DELETED":
        actions.append(h("button", {"class": "post-action", "data-action": "edit-post"}, text="Edit"))
        if post.state == "OPEN":
            actions.append(h("button", {"class": "post-action", "data-action": "close-post"}, text="Resolve"))
        else:
            actions.append(h("button", {"class": "post-action", "data-action": "reopen-post"}, text="Reopen"))
        actions.append(h("button", {"class": "post-action", "data-action": "delete-post"}, text="Delete"))
    return h("div", {"class": "post-actions"}, *actions)


def render_reply(reply: ReplyView) -> Node:
    actions = [render_reaction_button(reply.reaction_count, reply.has_reacted, "toggle-reply-reaction")]
    if reply.can_edit:
        actions.append(h("button", {"class": "reply-action", "data-action": "delete-reply"}, text="Delete"))
    return h(
        "div",
        {"class": "reply", "id": f"reply-{reply.id}", "data-reply-id": reply.id},
        render_author(reply.author),
        render_body(reply.body),
        render_attachments(reply.files),
        h("div", {"class": "reply-actions"}, *actions),
    )


def render_replies(view: PostView) -> Node:
    children = []
    if view.has_previous_page:
        label = "Loading..." if view.is_loading_previous else "Load more..."
        children.append(h("button", {"class": "load-previous", "data-action": "load-previous"}, text=label))
    children.extend(render_reply(r) for r in view.replies)
    return h("div", {"class": "replies"}, *children)


def render_reply_composer(view: PostView) -> Optional[Node]:
    if view.post.state == "DELETED":
        return None
    composer = view.reply_composer
    if not composer.is_expanded:
        return h("button", {"class": "reply-placeholder", "data-action": "expand-reply"}, text="Write a reply...")
    return render_composer(composer, ComposerTarget.REPLY_COMPOSER, placeholder="Write a reply...", submit_label="Send")


def render(view: PostView) -> Node:
    post = view.post
    if view.post_editor.is_expanded:
        body = render_composer(view.post_editor, ComposerTarget.POST_EDITOR, placeholder="Edit post...", submit_label="Save")
    else:
        body = render_body(post.body)
    return h(
        "article",
        {"class": f"post is-{post.state.lower()}", "id": f"post-{post.id}", "data-post-id": post.id},
        h("div", {"class": "post-header"},
          h("input", {"type": "checkbox", "class": "post-checkbox", "checked": view.is_checked}),
          render_author(post.author),
          render_state_badge(post.state)),
        body,
        render_attachments(post.files),
        render_post_actions(view),
        render_replies(view),
        render_reply_composer(view),
    )


def render_html(view: PostView) -> str:
    return render(view).to_html()
