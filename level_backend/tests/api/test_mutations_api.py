"""HTTP surface for mutations: auth, argument validation and payload serialization."""

import pytest

from app.services import spaces as spaces_service


async def test_requires_authentication(client):
    res = await client.post("/api/mutations/createSpace", json={"name": "x", "slug": "x"})
    assert res.status_code == 401
    assert res.json()["code"] == "UNAUTHORIZED"


async def test_rejects_invalid_token(client):
    res = await client.post(
        "/api/mutations/createSpace",
        json={"name": "x", "slug": "x"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert res.status_code == 401


async def test_unknown_mutation_is_404(client, owner, auth_headers):
    res = await client.post("/api/mutations/dropTables", json={}, headers=auth_headers(owner))
    assert res.status_code == 404


async def test_create_space_serializes_space(client, owner, auth_headers):
    res = await client.post("/api/mutations/createSpace", json={"name": "Level", "slug": "level"}, headers=auth_headers(owner))
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["errors"] == []
    assert body["space"]["slug"] == "level"
    assert body["space"]["setup_state"] == "CREATE_GROUPS"


async def test_create_space_validation_errors_in_payload(client, owner, auth_headers):
    res = await client.post("/api/mutations/createSpace", json={"name": "Level", "slug": "x" * 64}, headers=auth_headers(owner))
    assert res.status_code == 200
    assert res.json() == {
        "success": False,
        "space": None,
        "errors": [{"attribute": "slug", "message": "should be at most 63 character(s)"}],
    }


async def test_missing_required_argument_is_400(client, owner, auth_headers):
    res = await client.post("/api/mutations/createGroup", json={"name": "Eng"}, headers=auth_headers(owner))
    assert res.status_code == 400
    assert res.json()["errors"][0]["attribute"] == "space_id"


async def test_update_group_on_foreign_space_is_404(client, db, make_user, owner, auth_headers):
    other = await make_user()
    space, _ = await spaces_service.create_space(db, other, {"name": "Other", "slug": "other"})
    res = await client.post(
        "/api/mutations/updateGroup",
        json={"space_id": space.id, "group_id": 1, "name": "x"},
        headers=auth_headers(owner),
    )
    assert res.status_code == 404


async def test_bulk_create_groups_payloads(client, space_and_owner, owner, auth_headers):
    space, _ = space_and_owner
    res = await client.post(
        "/api/mutations/bulkCreateGroups",
        json={"space_id": space.id, "names": ["Eng", "Eng"]},
        headers=auth_headers(owner),
    )
    payloads = res.json()["payloads"]
    assert payloads[0]["success"] is True
    assert payloads[0]["group"]["name"] == "Eng"
    assert payloads[1] == {
        "success": False,
        "group": None,
        "errors": [{"attribute": "name", "message": "has already been taken"}],
        "args": {"name": "Eng"},
    }


async def test_create_post_and_reply_serialized_with_author(client, space_and_owner, owner, auth_headers):
    space, _ = space_and_owner
    headers = auth_headers(owner)
    post = (await client.post(
        "/api/mutations/createPost", json={"space_id": space.id, "body": "Hello"}, headers=headers,
    )).json()["post"]
    assert post["author"]["first_name"] == "Olive"
    assert post["can_edit"] is True
    assert post["reaction_count"] == 0

    reply = (await client.post(
        "/api/mutations/createReply",
        json={"space_id": space.id, "post_id": post["id"], "body": "Hi back"},
        headers=headers,
    )).json()
    assert reply["success"] is True
    assert reply["reply"]["body"] == "Hi back"

    reacted = (await client.post(
        "/api/mutations/createPostReaction", json={"space_id": space.id, "post_id": post["id"]}, headers=headers,
    )).json()
    assert reacted["post"]["reaction_count"] == 1
    assert reacted["post"]["has_reacted"] is True


async def test_complete_setup_step_wrong_state_is_422(client, space_and_owner, owner, auth_headers):
    space, _ = space_and_owner
    res = await client.post(
        "/api/mutations/completeSetupStep",
        json={"space_id": space.id, "state": "COMPLETE"},
        headers=auth_headers(owner),
    )
    assert res.status_code == 422
    assert res.json()["errors"][0]["attribute"] == "state"


@pytest.mark.parametrize("raw", [b"not json", b"[1, 2]"])
async def test_malformed_body_is_400(client, owner, auth_headers, raw):
    headers = {**auth_headers(owner), "Content-Type": "application/json"}
    res = await client.post("/api/mutations/createSpace", content=raw, headers=headers)
    assert res.status_code == 400


async def test_update_group_with_null_privacy_flag(client, space_and_owner, owner, auth_headers):
    space, _ = space_and_owner
    headers = auth_headers(owner)
    group = (await client.post(
        "/api/mutations/createGroup", json={"space_id": space.id, "name": "Eng"}, headers=headers,
    )).json()["group"]

    res = await client.post(
        "/api/mutations/updateGroup",
        json={"space_id": space.id, "group_id": group["id"], "name": "Eng2", "is_private": None},
        headers=headers,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["group"]["name"] == "Eng2"
    assert body["group"]["is_private"] is False
