"""Post detail and reply pagination endpoints."""

from app.services import posts as posts_service
from app.services import spaces as spaces_service


async def test_post_detail_includes_latest_replies(client, db, space_and_owner, owner, auth_headers):
    _, space_user = space_and_owner
    post = await posts_service.create_post(db, space_user, {"body": "Topic"})
    for i in range(3):
        await posts_service.create_reply(db, space_user, post, {"body": f"r{i}"})

    res = await client.get(f"/api/spaces/{space_user.space_id}/posts/{post.id}", headers=auth_headers(owner))
    assert res.status_code == 200
    body = res.json()
    assert body["post"]["body"] == "Topic"
    assert [r["body"] for r in body["replies"]["replies"]] == ["r0", "r1", "r2"]
    assert body["replies"]["has_previous_page"] is False


async def test_reply_pagination_with_cursor(client, db, space_and_owner, owner, auth_headers):
    _, space_user = space_and_owner
    post = await posts_service.create_post(db, space_user, {"body": "Topic"})
    replies = [await posts_service.create_reply(db, space_user, post, {"body": f"r{i}"}) for i in range(4)]
    url = f"/api/spaces/{space_user.space_id}/posts/{post.id}/replies"

    first = (await client.get(url, params={"limit": 2}, headers=auth_headers(owner))).json()
    assert [r["body"] for r in first["replies"]] == ["r2", "r3"]
    assert first["has_previous_page"] is True

    older = (await client.get(url, params={"limit": 2, "before": replies[2].id}, headers=auth_headers(owner))).json()
    assert [r["body"] for r in older["replies"]] == ["r0", "r1"]
    assert older["has_previous_page"] is False


async def test_non_member_gets_404(client, db, make_user, space_and_owner, auth_headers):
    _, space_user = space_and_owner
    post = await posts_service.create_post(db, space_user, {"body": "Topic"})
    stranger = await make_user()
    res = await client.get(f"/api/spaces/{space_user.space_id}/posts/{post.id}", headers=auth_headers(stranger))
    assert res.status_code == 404


async def test_member_sees_reaction_state_from_their_side(client, db, make_user, space_and_owner, auth_headers):
    space, owner_su = space_and_owner
    post = await posts_service.create_post(db, owner_su, {"body": "Topic"})
    await posts_service.create_post_reaction(db, owner_su, post)
    viewer = await make_user()
    await spaces_service.add_member(db, space, viewer)

    body = (await client.get(f"/api/spaces/{space.id}/posts/{post.id}", headers=auth_headers(viewer))).json()
    assert body["post"]["reaction_count"] == 1
    assert body["post"]["has_reacted"] is False
    assert body["post"]["can_edit"] is False
