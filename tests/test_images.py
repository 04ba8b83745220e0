"""
Integration tests for image upload and gallery management.
"""

import pytest
from httpx import AsyncClient

from marketplace.config import settings
from marketplace.utils.file_utils import FileStorage
from tests.conftest import auth_headers, error_body, jpeg_bytes, png_bytes

API = "/api/v1"


def _images_url(property_id) -> str:
    return f"{API}/properties/{property_id}/images"


async def _upload(client: AsyncClient, property_id, user, name="photo.png", content=None, **form):
    return await client.post(
        _images_url(property_id),
        files={"file": (name, content if content is not None else png_bytes(), "image/png")},
        data={key: str(value).lower() if isinstance(value, bool) else str(value) for key, value in form.items()},
        headers=auth_headers(user),
    )


class TestImageUpload:
    """Single and batch uploads."""

    @pytest.mark.asyncio
    async def test_first_image_becomes_primary(self, async_client: AsyncClient, test_owner, draft_property):
        response = await _upload(async_client, draft_property.id, test_owner)

        assert response.status_code == 201
        image = response.json()["image"]
        assert image["is_primary"] is True
        assert image["display_order"] == 0
        assert image["width"] == 64
        assert image["height"] == 48
        assert image["mime_type"] == "image/png"
        assert image["url"].startswith("/uploads/")
        assert FileStorage().absolute_path(image["file_path"]).exists()

    @pytest.mark.asyncio
    async def test_second_image_is_appended(self, async_client: AsyncClient, test_owner, draft_property):
        await _upload(async_client, draft_property.id, test_owner)
        response = await _upload(async_client, draft_property.id, test_owner, name="kitchen.png")

        image = response.json()["image"]
        assert image["is_primary"] is False
        assert image["display_order"] == 1

    @pytest.mark.asyncio
    async def test_upload_as_primary(self, async_client: AsyncClient, test_owner, draft_property):
        await _upload(async_client, draft_property.id, test_owner)
        response = await _upload(async_client, draft_property.id, test_owner, name="cover.png", is_primary=True)
        assert response.json()["image"]["is_primary"] is True

        listing = await async_client.get(_images_url(draft_property.id), headers=auth_headers(test_owner))
        data = listing.json()
        assert data["total"] == 2
        assert data["primary_image"]["filename"] == "cover.png"
        assert [image["is_primary"] for image in data["images"]] == [True, False]

    @pytest.mark.asyncio
    async def test_upload_fills_media_section(self, async_client: AsyncClient, test_owner, draft_property):
        uploaded = (await _upload(async_client, draft_property.id, test_owner)).json()["image"]

        response = await async_client.get(f"{API}/properties/{draft_property.id}", headers=auth_headers(test_owner))

        data = response.json()
        assert data["image_count"] == 1
        assert data["primary_image"]["id"] == uploaded["id"]
        media = data["property_details"]["media"]["photos"]["images"]
        assert [entry["id"] for entry in media] == [uploaded["id"]]

    @pytest.mark.asyncio
    async def test_image_unlocks_publishing(self, async_client: AsyncClient, test_owner, draft_property):
        headers = auth_headers(test_owner)
        await _upload(async_client, draft_property.id, test_owner)

        completion = await async_client.get(f"{API}/properties/{draft_property.id}/completion", headers=headers)
        assert completion.json()["is_complete"] is True

        response = await async_client.post(f"{API}/properties/{draft_property.id}/publish", headers=headers)
        assert response.status_code == 200
        assert response.json()["status"] == "published"

    @pytest.mark.asyncio
    async def test_wrong_type_is_rejected(self, async_client: AsyncClient, test_owner, draft_property):
        response = await async_client.post(
            _images_url(draft_property.id),
            files={"file": ("notes.txt", b"not an image", "text/plain")},
            headers=auth_headers(test_owner),
        )

        assert response.status_code == 400
        assert "not allowed" in error_body(response)["message"]

    @pytest.mark.asyncio
    async def test_content_must_match_type(self, async_client: AsyncClient, test_owner, draft_property):
        response = await _upload(async_client, draft_property.id, test_owner, content=jpeg_bytes())

        assert response.status_code == 400
        assert "doesn't match declared type" in error_body(response)["message"]

    @pytest.mark.asyncio
    async def test_corrupt_image(self, async_client: AsyncClient, test_owner, draft_property):
        response = await _upload(async_client, draft_property.id, test_owner, content=b"\x89PNG broken")

        assert response.status_code == 400
        assert "Invalid image file" in error_body(response)["message"]

    @pytest.mark.asyncio
    async def test_extension_must_match_type(self, async_client: AsyncClient, test_owner, draft_property):
        response = await _upload(async_client, draft_property.id, test_owner, name="photo.jpg")

        assert response.status_code == 400
        assert "doesn't match MIME type" in error_body(response)["message"]

    @pytest.mark.asyncio
    async def test_other_owner_cannot_upload(self, async_client: AsyncClient, other_owner, published_property):
        response = await _upload(async_client, published_property.id, other_owner)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_hidden_draft_is_not_found(self, async_client: AsyncClient, other_owner, draft_property):
        response = await _upload(async_client, draft_property.id, other_owner)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_image_limit(self, async_client: AsyncClient, test_owner, draft_property, monkeypatch):
        monkeypatch.setattr(settings, "max_images_per_property", 1)
        await _upload(async_client, draft_property.id, test_owner)

        response = await _upload(async_client, draft_property.id, test_owner, name="second.png")
        assert response.status_code == 400
        assert "limit exceeded" in error_body(response)["message"]

    @pytest.mark.asyncio
    async def test_batch_upload_reports_failures(self, async_client: AsyncClient, test_owner, draft_property):
        response = await async_client.post(
            f"{_images_url(draft_property.id)}/batch",
            files=[
                ("files", ("one.png", png_bytes(), "image/png")),
                ("files", ("two.jpg", jpeg_bytes(), "image/jpeg")),
                ("files", ("three.gif", b"GIF89a", "image/gif")),
            ],
            headers=auth_headers(test_owner),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is False
        assert data["uploaded_count"] == 2
        assert data["failed_count"] == 1
        assert data["errors"][0].startswith("three.gif:")
        assert [image["display_order"] for image in data["images"]] == [0, 1]

    @pytest.mark.asyncio
    async def test_batch_where_everything_fails(self, async_client: AsyncClient, test_owner, draft_property):
        response = await async_client.post(
            f"{_images_url(draft_property.id)}/batch",
            files=[("files", ("bad.txt", b"text", "text/plain"))],
            headers=auth_headers(test_owner),
        )

        assert response.status_code == 400
        assert "All uploads failed" in error_body(response)["message"]

    @pytest.mark.asyncio
    async def test_batch_file_cap(self, async_client: AsyncClient, test_owner, draft_property):
        files = [("files", (f"{index}.png", png_bytes(), "image/png")) for index in range(11)]

        response = await async_client.post(
            f"{_images_url(draft_property.id)}/batch", files=files, headers=auth_headers(test_owner)
        )

        assert response.status_code == 400
        assert error_body(response)["message"] == "Maximum 10 files allowed per upload"


class TestImageGallery:
    """Listing, reordering, cover selection and deletion."""

    @pytest.mark.asyncio
    async def test_public_gallery(self, async_client: AsyncClient, test_owner, published_property):
        await _upload(async_client, published_property.id, test_owner)

        response = await async_client.get(_images_url(published_property.id))
        assert response.status_code == 200
        assert response.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_draft_gallery_is_private(self, async_client: AsyncClient, test_owner, draft_property):
        await _upload(async_client, draft_property.id, test_owner)

        response = await async_client.get(_images_url(draft_property.id))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_set_primary(self, async_client: AsyncClient, test_owner, draft_property):
        headers = auth_headers(test_owner)
        first = (await _upload(async_client, draft_property.id, test_owner)).json()["image"]
        second = (await _upload(async_client, draft_property.id, test_owner, name="b.png")).json()["image"]

        response = await async_client.post(f"{_images_url(draft_property.id)}/{second['id']}/primary", headers=headers)
        assert response.status_code == 200
        assert response.json()["is_primary"] is True

        listing = (await async_client.get(_images_url(draft_property.id), headers=headers)).json()
        assert listing["primary_image"]["id"] == second["id"]
        assert {image["id"]: image["is_primary"] for image in listing["images"]}[first["id"]] is False

    @pytest.mark.asyncio
    async def test_update_display_order(self, async_client: AsyncClient, test_owner, draft_property):
        image = (await _upload(async_client, draft_property.id, test_owner)).json()["image"]

        response = await async_client.put(
            f"{_images_url(draft_property.id)}/{image['id']}",
            json={"display_order": 5},
            headers=auth_headers(test_owner),
        )

        assert response.status_code == 200
        assert response.json()["display_order"] == 5

    @pytest.mark.asyncio
    async def test_image_of_another_property(
        self, async_client: AsyncClient, test_owner, draft_property, published_property
    ):
        image = (await _upload(async_client, draft_property.id, test_owner)).json()["image"]

        response = await async_client.post(
            f"{_images_url(published_property.id)}/{image['id']}/primary", headers=auth_headers(test_owner)
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_primary_promotes_next(self, async_client: AsyncClient, test_owner, draft_property):
        headers = auth_headers(test_owner)
        first = (await _upload(async_client, draft_property.id, test_owner)).json()["image"]
        second = (await _upload(async_client, draft_property.id, test_owner, name="b.png")).json()["image"]

        response = await async_client.delete(f"{_images_url(draft_property.id)}/{first['id']}", headers=headers)
        assert response.status_code == 204
        assert not FileStorage().absolute_path(first["file_path"]).exists()

        listing = (await async_client.get(_images_url(draft_property.id), headers=headers)).json()
        assert listing["total"] == 1
        assert listing["primary_image"]["id"] == second["id"]

    @pytest.mark.asyncio
    async def test_delete_property_removes_files(self, async_client: AsyncClient, test_owner, draft_property):
        headers = auth_headers(test_owner)
        image = (await _upload(async_client, draft_property.id, test_owner)).json()["image"]

        response = await async_client.delete(f"{API}/properties/{draft_property.id}", headers=headers)

        assert response.status_code == 204
        assert not FileStorage().absolute_path(image["file_path"]).exists()


MP4_BYTES = b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom" + b"\x00" * 64
WEBM_BYTES = b"\x1a\x45\xdf\xa3\x9f\x42\x86\x81\x01" + b"\x00" * 64


def _video_url(property_id) -> str:
    return f"{API}/properties/{property_id}/video"


def _video_file(video: dict):
    return FileStorage().absolute_path(video["url"][len("/uploads/"):])


async def _upload_video(client: AsyncClient, property_id, user, name="tour.mp4", content=MP4_BYTES, mime="video/mp4"):
    return await client.post(
        _video_url(property_id),
        files={"file": (name, content, mime)},
        headers=auth_headers(user),
    )


class TestPropertyVideo:
    """One walkthrough video per property, kept in media.videos."""

    @pytest.mark.asyncio
    async def test_upload_mp4(self, async_client: AsyncClient, test_owner, draft_property):
        response = await _upload_video(async_client, draft_property.id, test_owner)

        assert response.status_code == 201
        video = response.json()
        assert video["property_id"] == str(draft_property.id)
        assert video["file_name"] == "tour.mp4"
        assert video["mime_type"] == "video/mp4"
        assert video["file_size"] == len(MP4_BYTES)
        assert video["url"].startswith(f"/uploads/properties/{draft_property.id}/videos/")
        assert _video_file(video).exists()

        details = (await async_client.get(
            f"{API}/properties/{draft_property.id}", headers=auth_headers(test_owner)
        )).json()["property_details"]
        assert details["media"]["videos"]["urls"] == [video["url"]]
        assert details["media"]["videos"]["video"]["mimeType"] == "video/mp4"

    @pytest.mark.asyncio
    async def test_upload_webm(self, async_client: AsyncClient, test_owner, draft_property):
        response = await _upload_video(
            async_client, draft_property.id, test_owner, name="tour.webm", content=WEBM_BYTES, mime="video/webm"
        )

        assert response.status_code == 201
        assert response.json()["url"].endswith(".webm")

    @pytest.mark.asyncio
    async def test_video_keeps_the_photos(self, async_client: AsyncClient, test_owner, draft_property):
        image = (await _upload(async_client, draft_property.id, test_owner)).json()["image"]
        await _upload_video(async_client, draft_property.id, test_owner)

        details = (await async_client.get(
            f"{API}/properties/{draft_property.id}", headers=auth_headers(test_owner)
        )).json()["property_details"]
        assert [entry["id"] for entry in details["media"]["photos"]["images"]] == [image["id"]]

    @pytest.mark.asyncio
    async def test_wrong_type_is_rejected(self, async_client: AsyncClient, test_owner, draft_property):
        response = await _upload_video(
            async_client, draft_property.id, test_owner, name="tour.avi", content=b"RIFF....AVI ", mime="video/x-msvideo"
        )

        assert response.status_code == 400
        assert "not allowed" in error_body(response)["message"]

    @pytest.mark.asyncio
    async def test_content_must_match_type(self, async_client: AsyncClient, test_owner, draft_property):
        response = await _upload_video(async_client, draft_property.id, test_owner, content=WEBM_BYTES)

        assert response.status_code == 400
        assert "doesn't match declared type" in error_body(response)["message"]

    @pytest.mark.asyncio
    async def test_size_limit(self, async_client: AsyncClient, test_owner, draft_property, monkeypatch):
        monkeypatch.setattr(settings, "max_video_size", 32)

        response = await _upload_video(async_client, draft_property.id, test_owner)

        assert response.status_code == 400
        assert "exceeds maximum allowed size" in error_body(response)["message"]

    @pytest.mark.asyncio
    async def test_new_upload_replaces_the_old(self, async_client: AsyncClient, test_owner, draft_property):
        first = (await _upload_video(async_client, draft_property.id, test_owner)).json()
        second = (await _upload_video(
            async_client, draft_property.id, test_owner, name="tour.webm", content=WEBM_BYTES, mime="video/webm"
        )).json()

        assert not _video_file(first).exists()
        assert _video_file(second).exists()

        current = await async_client.get(_video_url(draft_property.id), headers=auth_headers(test_owner))
        assert current.json()["url"] == second["url"]

    @pytest.mark.asyncio
    async def test_delete_video(self, async_client: AsyncClient, test_owner, draft_property):
        headers = auth_headers(test_owner)
        video = (await _upload_video(async_client, draft_property.id, test_owner)).json()

        response = await async_client.delete(_video_url(draft_property.id), headers=headers)
        assert response.status_code == 204
        assert not _video_file(video).exists()

        missing = await async_client.get(_video_url(draft_property.id), headers=headers)
        assert missing.status_code == 404
        again = await async_client.delete(_video_url(draft_property.id), headers=headers)
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_public_video(self, async_client: AsyncClient, test_owner, published_property):
        await _upload_video(async_client, published_property.id, test_owner)

        response = await async_client.get(_video_url(published_property.id))
        assert response.status_code == 200
        assert response.json()["mime_type"] == "video/mp4"

    @pytest.mark.asyncio
    async def test_other_owner_cannot_upload(self, async_client: AsyncClient, other_owner, published_property):
        response = await _upload_video(async_client, published_property.id, other_owner)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_property_removes_video(self, async_client: AsyncClient, test_owner, draft_property):
        headers = auth_headers(test_owner)
        video = (await _upload_video(async_client, draft_property.id, test_owner)).json()

        response = await async_client.delete(f"{API}/properties/{draft_property.id}", headers=headers)

        assert response.status_code == 204
        assert not _video_file(video).exists()
        assert not FileStorage().property_directory(draft_property.id).exists()
