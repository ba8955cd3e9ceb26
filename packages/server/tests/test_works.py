"""
Tests for works, likes and profile pages.

Tests cover:
- Upload: creators only, images only, stored and served from the works bucket
- Visibility: private works vanish from the gallery and from other viewers
- Likes: idempotent like/unlike, owners cannot like their own work
- Profile pages list public works, owners also see private ones
"""

from __future__ import annotations

import uuid
from pathlib import Path

import pytest

from app.services.works import normalize_tags, parse_tags

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class TestTags:
    def test_parse_drops_blanks(self):
        assert parse_tags(" ink, ,poster ,") == ["ink", "poster"]
        assert parse_tags(None) == []

    def test_normalize(self):
        assert normalize_tags("ink,poster") == "ink, poster"
        assert normalize_tags(" , ") is None


class TestUpload:
    @pytest.mark.asyncio
    async def test_creator_uploads_work(self, client, creator, make_work, tmp_path):
        work = await make_work(creator, title="Harbour at dusk")
        assert work["creator_id"] == str(creator.id)
        assert work["tags"] == ["watercolour", "landscape"]
        assert work["is_public"] is True
        assert work["image_url"].startswith(f"/storage/works/images/{creator.id}/")
        assert work["image_url"].endswith(".png")

        relative = work["image_url"].removeprefix("/storage/works/")
        stored = Path(tmp_path) / "storage" / "works" / relative
        assert stored.read_bytes() == PNG_BYTES

    @pytest.mark.asyncio
    async def test_client_cannot_upload(self, client, client_account):
        resp = await client.post(
            "/api/v1/works",
            data={"title": "Not mine"},
            files={"image": ("a.png", PNG_BYTES, "image/png")},
            headers=client_account.headers,
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_non_image_rejected(self, client, creator):
        resp = await client.post(
            "/api/v1/works",
            data={"title": "Notes"},
            files={"image": ("notes.txt", b"hello", "text/plain")},
            headers=creator.headers,
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "UPLOAD_REJECTED"

    @pytest.mark.asyncio
    async def test_blank_title_rejected(self, client, creator):
        resp = await client.post(
            "/api/v1/works",
            data={"title": "   ", "description": "keep me"},
            files={"image": ("a.png", PNG_BYTES, "image/png")},
            headers=creator.headers,
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["form"]["description"] == "keep me"


class TestGalleryAndVisibility:
    @pytest.mark.asyncio
    async def test_gallery_shows_public_works_newest_first(self, client, creator, make_work):
        older = await make_work(creator, title="Older")
        newer = await make_work(creator, title="Newer")
        await make_work(creator, title="Hidden", is_public=False)

        resp = await client.get("/api/v1/works")
        assert resp.status_code == 200
        cards = resp.json()["data"]
        assert [c["id"] for c in cards] == [newer["id"], older["id"]]
        assert cards[0]["creator_name"] == "Mika"
        assert cards[0]["like_count"] == 0

    @pytest.mark.asyncio
    async def test_private_work_hidden_from_others(
        self, client, creator, client_account, make_work
    ):
        work = await make_work(creator, is_public=False)

        anonymous = await client.get(f"/api/v1/works/{work['id']}")
        assert anonymous.status_code == 404
        other = await client.get(f"/api/v1/works/{work['id']}", headers=client_account.headers)
        assert other.status_code == 404

        owner = await client.get(f"/api/v1/works/{work['id']}", headers=creator.headers)
        assert owner.status_code == 200
        assert owner.json()["is_owner"] is True

    @pytest.mark.asyncio
    async def test_visibility_round_trip(self, client, creator, make_work):
        work = await make_work(creator)

        hidden = await client.put(
            f"/api/v1/works/{work['id']}/visibility", json={"is_public": False}, headers=creator.headers
        )
        assert hidden.status_code == 200
        assert hidden.json()["is_public"] is False
        assert (await client.get("/api/v1/works")).json()["data"] == []

        shown = await client.put(
            f"/api/v1/works/{work['id']}/visibility", json={"is_public": True}, headers=creator.headers
        )
        assert shown.json()["is_public"] is True
        assert [c["id"] for c in (await client.get("/api/v1/works")).json()["data"]] == [work["id"]]

    @pytest.mark.asyncio
    async def test_only_owner_can_edit(self, client, creator, make_account, make_work):
        work = await make_work(creator)
        other = await make_account("creator")
        resp = await client.patch(
            f"/api/v1/works/{work['id']}", json={"title": "Stolen"}, headers=other.headers
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_edits_text_fields(self, client, creator, make_work):
        work = await make_work(creator)
        resp = await client.patch(
            f"/api/v1/works/{work['id']}",
            json={"title": " Renamed ", "tags": "ink"},
            headers=creator.headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["title"] == "Renamed"
        assert body["tags"] == ["ink"]
        assert body["image_url"] == work["image_url"]

    @pytest.mark.asyncio
    async def test_owner_replaces_image(self, client, creator, make_work, tmp_path):
        work = await make_work(creator)
        jpeg = b"\xff\xd8\xff\xe0" + b"\x00" * 32
        resp = await client.put(
            f"/api/v1/works/{work['id']}/image",
            files={"image": ("retake.jpg", jpeg, "image/jpeg")},
            headers=creator.headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["image_url"] != work["image_url"]
        assert body["image_url"].startswith(f"/storage/works/images/{creator.id}/")
        assert body["image_url"].endswith(".jpg")
        assert body["title"] == work["title"]

        relative = body["image_url"].removeprefix("/storage/works/")
        assert (Path(tmp_path) / "storage" / "works" / relative).read_bytes() == jpeg
        detail = await client.get(f"/api/v1/works/{work['id']}", headers=creator.headers)
        assert detail.json()["work"]["image_url"] == body["image_url"]

    @pytest.mark.asyncio
    async def test_replace_image_rules(self, client, creator, make_account, make_work):
        work = await make_work(creator)
        url = f"/api/v1/works/{work['id']}/image"

        other = await make_account("creator")
        stolen = await client.put(
            url, files={"image": ("a.png", PNG_BYTES, "image/png")}, headers=other.headers
        )
        assert stolen.status_code == 403

        not_image = await client.put(
            url, files={"image": ("notes.txt", b"hello", "text/plain")}, headers=creator.headers
        )
        assert not_image.status_code == 422
        assert not_image.json()["error"]["code"] == "UPLOAD_REJECTED"

        detail = await client.get(f"/api/v1/works/{work['id']}", headers=creator.headers)
        assert detail.json()["work"]["image_url"] == work["image_url"]

    @pytest.mark.asyncio
    async def test_missing_work(self, client):
        resp = await client.get(f"/api/v1/works/{uuid.uuid4()}")
        assert resp.status_code == 404


class TestLikes:
    @pytest.mark.asyncio
    async def test_like_and_unlike(self, client, creator, client_account, make_work):
        work = await make_work(creator)
        url = f"/api/v1/works/{work['id']}/like"

        liked = await client.put(url, headers=client_account.headers)
        assert liked.status_code == 200
        assert liked.json() == {"work_id": work["id"], "like_count": 1, "liked": True}

        again = await client.put(url, headers=client_account.headers)
        assert again.json()["like_count"] == 1

        anonymous = await client.get(url)
        assert anonymous.json() == {"work_id": work["id"], "like_count": 1, "liked": False}

        unliked = await client.delete(url, headers=client_account.headers)
        assert unliked.json() == {"work_id": work["id"], "like_count": 0, "liked": False}

        twice = await client.delete(url, headers=client_account.headers)
        assert twice.json()["like_count"] == 0

    @pytest.mark.asyncio
    async def test_like_counts_in_gallery(self, client, creator, make_account, make_work):
        work = await make_work(creator)
        for _ in range(2):
            fan = await make_account("client")
            await client.put(f"/api/v1/works/{work['id']}/like", headers=fan.headers)

        cards = (await client.get("/api/v1/works")).json()["data"]
        assert cards[0]["like_count"] == 2

    @pytest.mark.asyncio
    async def test_owner_cannot_like_own_work(self, client, creator, make_work):
        work = await make_work(creator)
        resp = await client.put(f"/api/v1/works/{work['id']}/like", headers=creator.headers)
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_like_requires_login(self, client, creator, make_work):
        work = await make_work(creator)
        resp = await client.put(f"/api/v1/works/{work['id']}/like")
        assert resp.status_code == 401


class TestProfiles:
    @pytest.mark.asyncio
    async def test_public_profile_lists_public_works(
        self, client, creator, client_account, make_work
    ):
        public = await make_work(creator, title="Shown")
        await make_work(creator, title="Hidden", is_public=False)

        resp = await client.get(f"/api/v1/profiles/{creator.id}", headers=client_account.headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["profile"]["display_name"] == "Mika"
        assert body["profile"]["role"] == "creator"
        assert body["is_me"] is False
        assert [w["id"] for w in body["works"]] == [public["id"]]

    @pytest.mark.asyncio
    async def test_owner_sees_private_works(self, client, creator, make_work):
        await make_work(creator, title="Shown")
        await make_work(creator, title="Hidden", is_public=False)

        body = (await client.get(f"/api/v1/profiles/{creator.id}", headers=creator.headers)).json()
        assert body["is_me"] is True
        assert {w["title"] for w in body["works"]} == {"Shown", "Hidden"}

    @pytest.mark.asyncio
    async def test_client_profile_has_no_works(self, client, client_account):
        body = (await client.get(f"/api/v1/profiles/{client_account.id}")).json()
        assert body["profile"]["role"] == "client"
        assert body["works"] == []

    @pytest.mark.asyncio
    async def test_missing_profile(self, client):
        resp = await client.get(f"/api/v1/profiles/{uuid.uuid4()}")
        assert resp.status_code == 404
