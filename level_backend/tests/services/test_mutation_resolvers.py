"""Mutation resolvers: payload envelopes, error formatting and which failures propagate."""

import pytest
from sqlalchemy import select

from app import mutations
from app.changeset import Changeset
from app.errors import ChangesetError, ForbiddenError, NotFoundError
from app.mutations import MutationContext, format_errors
from app.services import groups as groups_service
from app.services import spaces as spaces_service
from models.logs import OperationLog


def test_format_errors_interpolates_props():
    cs = Changeset(None, {})
    cs.add_error("name", "should be at most %{count} character(s)", count=255, validation="length")
    cs.add_error("slug", "can't be blank")
    assert format_errors(cs) == [
        {"attribute": "name", "message": "should be at most 255 character(s)"},
        {"attribute": "slug", "message": "can't be blank"},
    ]


async def test_create_space_success_writes_audit_log(db, context):
    payload = await mutations.create_space(db, {"name": "Level", "slug": "level"}, context)
    assert payload["success"] is True
    assert payload["errors"] == []
    assert payload["space"].slug == "level"

    log = (await db.execute(select(OperationLog))).scalar_one()
    assert log.action == "create_space"
    assert log.space_id == payload["space"].id


async def test_create_space_validation_failure(db, context):
    payload = await mutations.create_space(db, {"name": "", "slug": "level"}, context)
    assert payload == {
        "success": False,
        "space": None,
        "errors": [{"attribute": "name", "message": "can't be blank"}],
    }


async def test_create_group_reports_missing_space_in_payload(db, context):
    payload = await mutations.create_group(db, {"space_id": 12345, "name": "Eng"}, context)
    assert payload == {"success": False, "group": None, "errors": []}


async def test_create_group_success_and_duplicate(db, context, space_and_owner):
    space, _ = space_and_owner
    ok = await mutations.create_group(db, {"space_id": space.id, "name": "Eng"}, context)
    assert ok["success"] is True
    assert ok["group"].name == "Eng"

    dup = await mutations.create_group(db, {"space_id": space.id, "name": "eng"}, context)
    assert dup == {
        "success": False,
        "group": None,
        "errors": [{"attribute": "name", "message": "has already been taken"}],
    }


async def test_update_group_validation_and_propagation(db, context, space_and_owner):
    space, space_user = space_and_owner
    group = await groups_service.create_group(db, space_user, {"name": "Eng"})

    ok = await mutations.update_group(db, {"space_id": space.id, "group_id": group.id, "name": "Engineering"}, context)
    assert ok["success"] is True
    assert ok["group"].name == "Engineering"

    bad = await mutations.update_group(db, {"space_id": space.id, "group_id": group.id, "name": ""}, context)
    assert bad == {"success": False, "group": None, "errors": [{"attribute": "name", "message": "can't be blank"}]}

    with pytest.raises(NotFoundError):
        await mutations.update_group(db, {"space_id": space.id, "group_id": 999, "name": "x"}, context)


async def test_bulk_create_groups_one_payload_per_name(db, context, space_and_owner):
    space, _ = space_and_owner
    payload = await mutations.bulk_create_groups(db, {"space_id": space.id, "names": ["One", "", "Two", "one"]}, context)
    results = payload["payloads"]
    assert [p["args"] for p in results] == [{"name": "One"}, {"name": ""}, {"name": "Two"}, {"name": "one"}]
    assert [p["success"] for p in results] == [True, False, True, False]
    assert results[1]["errors"] == [{"attribute": "name", "message": "can't be blank"}]
    assert results[3]["errors"] == [{"attribute": "name", "message": "has already been taken"}]
    assert results[0]["group"].name == "One"
    assert results[1]["group"] is None


async def test_bulk_create_groups_propagates_space_lookup_failure(db, context):
    with pytest.raises(NotFoundError):
        await mutations.bulk_create_groups(db, {"space_id": 42, "names": ["x"]}, context)


async def test_create_post_envelope_and_event(db, context, space_and_owner, published):
    space, _ = space_and_owner
    payload = await mutations.create_post(db, {"space_id": space.id, "body": "Ship it"}, context)
    assert payload["success"] is True
    assert payload["post"].body == "Ship it"
    assert published == [{"type": "post_created", "space_id": space.id, "post_id": payload["post"].id}]

    bad = await mutations.create_post(db, {"space_id": space.id, "body": ""}, context)
    assert bad == {"success": False, "post": None, "errors": [{"attribute": "body", "message": "can't be blank"}]}


async def test_create_post_propagates_missing_space(db, context):
    with pytest.raises(NotFoundError):
        await mutations.create_post(db, {"space_id": 77, "body": "hi"}, context)


async def test_complete_setup_step(db, context, space_and_owner):
    space, _ = space_and_owner
    payload = await mutations.complete_setup_step(db, {"space_id": space.id, "state": "CREATE_GROUPS", "is_skipped": False}, context)
    assert payload == {"success": True, "state": "INVITE_USERS"}

    with pytest.raises(ChangesetError):
        await mutations.complete_setup_step(db, {"space_id": space.id, "state": "CREATE_GROUPS"}, context)


async def test_complete_setup_step_forbidden_for_members(db, make_user, space_and_owner):
    space, _ = space_and_owner
    user = await make_user()
    await spaces_service.add_member(db, space, user)
    with pytest.raises(ForbiddenError):
        await mutations.complete_setup_step(db, {"space_id": space.id, "state": "CREATE_GROUPS"}, MutationContext(current_user=user))


async def test_reply_and_reaction_resolvers_publish_events(db, context, space_and_owner, published):
    space, _ = space_and_owner
    post = (await mutations.create_post(db, {"space_id": space.id, "body": "Question?"}, context))["post"]
    args = {"space_id": space.id, "post_id": post.id}

    reply = (await mutations.create_reply(db, {**args, "body": "Answer"}, context))["reply"]
    await mutations.create_post_reaction(db, args, context)
    await mutations.create_reply_reaction(db, {**args, "reply_id": reply.id}, context)
    closed = await mutations.close_post(db, args, context)
    assert closed["post"].state == "CLOSED"

    assert [e["type"] for e in published] == [
        "post_created", "reply_created", "post_reactions_updated", "reply_reactions_updated", "post_closed",
    ]
    assert published[2]["reaction_count"] == 1
    assert published[4]["state"] == "CLOSED"


async def test_reaction_resolvers_write_audit_log(db, context, space_and_owner):
    space, _ = space_and_owner
    post = (await mutations.create_post(db, {"space_id": space.id, "body": "Question?"}, context))["post"]
    args = {"space_id": space.id, "post_id": post.id}
    reply = (await mutations.create_reply(db, {**args, "body": "Answer"}, context))["reply"]
    reply_args = {**args, "reply_id": reply.id}

    await mutations.create_post_reaction(db, args, context)
    await mutations.delete_post_reaction(db, args, context)
    await mutations.create_reply_reaction(db, reply_args, context)
    await mutations.delete_reply_reaction(db, reply_args, context)

    logs = (await db.execute(select(OperationLog).order_by(OperationLog.id))).scalars().all()
    assert [log.action for log in logs] == [
        "create_post", "create_reply",
        "create_post_reaction", "delete_post_reaction",
        "create_reply_reaction", "delete_reply_reaction",
    ]
    assert all(log.space_id == space.id for log in logs)


async def test_create_reply_validation(db, context, space_and_owner):
    space, _ = space_and_owner
    post = (await mutations.create_post(db, {"space_id": space.id, "body": "Q"}, context))["post"]
    payload = await mutations.create_reply(db, {"space_id": space.id, "post_id": post.id, "body": ""}, context)
    assert payload == {"success": False, "reply": None, "errors": [{"attribute": "body", "message": "can't be blank"}]}


async def test_delete_post_then_lookups_fail(db, context, space_and_owner):
    space, _ = space_and_owner
    post = (await mutations.create_post(db, {"space_id": space.id, "body": "bye"}, context))["post"]
    args = {"space_id": space.id, "post_id": post.id}
    assert (await mutations.delete_post(db, args, context))["post"].state == "DELETED"
    with pytest.raises(NotFoundError):
        await mutations.update_post(db, {**args, "body": "again"}, context)


def test_resolver_table_covers_required_mutations():
    for name in ("createSpace", "createGroup", "updateGroup", "bulkCreateGroups", "createPost", "completeSetupStep"):
        assert name in mutations.RESOLVERS
