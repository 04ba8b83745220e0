"""
Tests for the service layer business rules.
"""

import pytest
from datetime import datetime, timedelta, timezone

from marketplace.flows.definitions import FlowType
from marketplace.models.property import PropertyStatus, PUBLIC_TAG
from marketplace.models.user import UserRole
from marketplace.models.visit import ReportStatus, VisitStatus
from marketplace.repositories.favorite import FavoriteRepository
from marketplace.schemas.auth import RegisterRequest
from marketplace.schemas.property import PropertyCreate, PropertySearchFilters, PropertyUpdate
from marketplace.services.auth import AuthService
from marketplace.services.coordinates import CoordinateService
from marketplace.services.favorite import FavoriteService
from marketplace.services.moderation import ModerationService
from marketplace.services.property import PropertyService
from marketplace.services.visit import VisitService
from marketplace.utils.exceptions import (
    ConflictError,
    ForbiddenError,
    InactiveUserError,
    InsufficientPermissionsError,
    InvalidCredentialsError,
    InvalidFlowError,
    PropertyIncompleteError,
    PropertyNotFoundError,
    PropertyStatusError,
    StepValidationError,
    ValidationError,
)
from tests.conftest import ImageFactory, PropertyFactory, TEST_PASSWORD, land_steps, rental_steps


async def _with_image(db_session, image_repository, property_obj):
    await ImageFactory.create_image(image_repository, property_obj.id, is_primary=True)
    await db_session.refresh(property_obj)
    return property_obj


class TestAuthService:
    """Registration, login and passwords."""

    @pytest.mark.asyncio
    async def test_register(self, auth_service: AuthService):
        user = await auth_service.register(RegisterRequest(
            email="new.owner@test.com",
            password="secret123",
            full_name="New Owner",
            role=UserRole.PROPERTY_OWNER,
        ))

        assert user.email == "new.owner@test.com"
        assert user.role == UserRole.PROPERTY_OWNER
        assert user.verify_password("secret123")

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, auth_service: AuthService, test_owner):
        with pytest.raises(ConflictError, match="already registered"):
            await auth_service.register(RegisterRequest(
                email=test_owner.email,
                password="secret123",
                full_name="Someone Else",
            ))

    @pytest.mark.asyncio
    async def test_login_returns_tokens(self, auth_service: AuthService, test_owner):
        user, access_token, refresh_token = await auth_service.login(test_owner.email, TEST_PASSWORD)

        assert user.id == test_owner.id
        assert (await auth_service.get_current_user(access_token)).id == test_owner.id
        assert await auth_service.refresh_access_token(refresh_token)

    @pytest.mark.asyncio
    async def test_wrong_password(self, auth_service: AuthService, test_owner):
        with pytest.raises(InvalidCredentialsError):
            await auth_service.authenticate_user(test_owner.email, "wrongpassword1")

    @pytest.mark.asyncio
    async def test_inactive_user(self, auth_service: AuthService, test_inactive_user):
        with pytest.raises(InactiveUserError):
            await auth_service.authenticate_user(test_inactive_user.email, TEST_PASSWORD)

    @pytest.mark.asyncio
    async def test_blank_credentials(self, auth_service: AuthService):
        with pytest.raises(ValidationError, match="Email is required"):
            await auth_service.authenticate_user("  ", TEST_PASSWORD)
        with pytest.raises(ValidationError, match="Password is required"):
            await auth_service.authenticate_user("owner@test.com", "")

    @pytest.mark.asyncio
    async def test_change_password(self, auth_service: AuthService, test_owner):
        await auth_service.change_password(test_owner, TEST_PASSWORD, "brandnew123")
        assert (await auth_service.authenticate_user(test_owner.email, "brandnew123")).id == test_owner.id

        with pytest.raises(InvalidCredentialsError):
            await auth_service.change_password(test_owner, "not-my-password", "another123")


class TestPropertyWizard:
    """Creating listings and saving steps."""

    @pytest.mark.asyncio
    async def test_create_draft(self, property_service: PropertyService, test_owner):
        property_obj = await property_service.create_property(
            PropertyCreate(flow_type=FlowType.RESIDENTIAL_RENT, steps=rental_steps(), tags=["metro", PUBLIC_TAG]),
            test_owner,
        )

        assert property_obj.status == PropertyStatus.DRAFT
        assert len(property_obj.code) == 6
        assert property_obj.title == "Test Rental Property"
        assert property_obj.price == 25000
        assert property_obj.bedrooms == 2
        assert property_obj.tags == ["metro"]
        assert property_obj.property_details["meta"]["id"] == str(property_obj.id)

    @pytest.mark.asyncio
    async def test_seekers_cannot_list(self, property_service: PropertyService, test_seeker):
        with pytest.raises(InsufficientPermissionsError):
            await property_service.create_property(PropertyCreate(flow_type=FlowType.RESIDENTIAL_RENT), test_seeker)

    @pytest.mark.asyncio
    async def test_foreign_initial_step(self, property_service: PropertyService, test_owner):
        with pytest.raises(InvalidFlowError):
            await property_service.create_property(
                PropertyCreate(flow_type=FlowType.RESIDENTIAL_RENT, steps=land_steps()), test_owner
            )

    @pytest.mark.asyncio
    async def test_save_step_rederives_columns(self, property_service: PropertyService, draft_property, test_owner):
        rental = dict(rental_steps()["res_rent_rental"], rentAmount=31000)
        updated = await property_service.save_step(draft_property.id, "res_rent_rental", rental, test_owner)

        assert updated.price == 31000
        assert updated.steps["res_rent_rental"]["rentAmount"] == 31000

    @pytest.mark.asyncio
    async def test_save_step_with_validation(self, property_service: PropertyService, draft_property, test_owner):
        rental = dict(rental_steps()["res_rent_rental"], rentAmount=10)

        with pytest.raises(StepValidationError) as exc_info:
            await property_service.save_step(
                draft_property.id, "res_rent_rental", rental, test_owner, validate=True
            )
        assert exc_info.value.field_errors[0]["field"] == "rentAmount"

        # without validation the draft keeps whatever was typed
        updated = await property_service.save_step(draft_property.id, "res_rent_rental", rental, test_owner)
        assert updated.price == 10

    @pytest.mark.asyncio
    async def test_location_step_syncs_coordinates(self, db_session, property_service, draft_property, test_owner):
        location = dict(rental_steps()["res_rent_location"], coordinates={"latitude": 13.05, "longitude": 77.62})
        await property_service.save_step(draft_property.id, "res_rent_location", location, test_owner)

        stats = await CoordinateService(db_session).get_migration_stats()
        assert stats["migrated"] == 1

    @pytest.mark.asyncio
    async def test_other_owner_cannot_edit(self, property_service, published_property, other_owner):
        with pytest.raises(InsufficientPermissionsError):
            await property_service.save_step(published_property.id, "res_rent_rental", {}, other_owner)

    @pytest.mark.asyncio
    async def test_completion(self, db_session, image_repository, property_service, draft_property, test_owner):
        completion = await property_service.get_completion(draft_property.id, test_owner)
        assert completion.percentage == 80
        assert not completion.has_images

        await _with_image(db_session, image_repository, draft_property)
        completion = await property_service.get_completion(draft_property.id, test_owner)
        assert completion.is_complete


class TestPropertyLifecycle:
    """Publishing, archiving and visibility."""

    @pytest.mark.asyncio
    async def test_publish_requires_images(self, property_service, draft_property, test_owner):
        with pytest.raises(PropertyIncompleteError):
            await property_service.publish_property(draft_property.id, test_owner)

    @pytest.mark.asyncio
    async def test_publish_requires_valid_steps(
        self, db_session, image_repository, property_service, draft_property, test_owner
    ):
        await property_service.save_step(
            draft_property.id, "res_rent_rental", dict(rental_steps()["res_rent_rental"], rentAmount=10), test_owner
        )
        await _with_image(db_session, image_repository, draft_property)

        with pytest.raises(StepValidationError):
            await property_service.publish_property(draft_property.id, test_owner)

    @pytest.mark.asyncio
    async def test_publish_and_toggle(self, db_session, image_repository, property_service, draft_property, test_owner):
        await _with_image(db_session, image_repository, draft_property)

        published = await property_service.publish_property(draft_property.id, test_owner)
        assert published.status == PropertyStatus.PUBLISHED
        assert published.property_details["meta"]["status"] == "published"
        assert "publishedAt" in published.property_details["meta"]
        assert PUBLIC_TAG not in published.tags

        with pytest.raises(PropertyStatusError, match="Cannot publish a property that is published"):
            await property_service.publish_property(draft_property.id, test_owner)

        unpublished = await property_service.toggle_publish(draft_property.id, test_owner)
        assert unpublished.status == PropertyStatus.DRAFT

        republished = await property_service.toggle_publish(draft_property.id, test_owner)
        assert republished.status == PropertyStatus.PUBLISHED

    @pytest.mark.asyncio
    async def test_archive(self, property_service, published_property, test_owner):
        archived = await property_service.archive_property(published_property.id, test_owner)

        assert archived.status == PropertyStatus.ARCHIVED
        assert PUBLIC_TAG not in archived.tags

        with pytest.raises(PropertyStatusError, match="already archived"):
            await property_service.archive_property(published_property.id, test_owner)
        with pytest.raises(PropertyStatusError):
            await property_service.save_step(published_property.id, "res_rent_rental", {}, test_owner)

    @pytest.mark.asyncio
    async def test_drafts_are_hidden_from_others(self, property_service, draft_property, test_seeker, test_moderator):
        with pytest.raises(PropertyNotFoundError):
            await property_service.get_property(draft_property.id, test_seeker)
        with pytest.raises(PropertyNotFoundError):
            await property_service.get_property(draft_property.id, None)

        assert (await property_service.get_property(draft_property.id, test_moderator)).id == draft_property.id
        assert (await property_service.get_by_code(draft_property.code.lower(), test_moderator)).id == draft_property.id

    @pytest.mark.asyncio
    async def test_owner_listing_visibility(self, property_service, draft_property, published_property, test_owner, test_seeker):
        _, own_total = await property_service.get_owner_properties(test_owner.id, test_owner)
        assert own_total == 2

        visible, total = await property_service.get_owner_properties(test_owner.id, test_seeker)
        assert total == 1
        assert visible[0].id == published_property.id

    @pytest.mark.asyncio
    async def test_replace_details_keeps_identity(self, property_service, draft_property, test_owner):
        details = dict(draft_property.property_details)
        details["meta"] = dict(details["meta"], id="forged", code="XXXXXX")
        details["media"] = {"photos": {"images": [{"id": "forged"}]}, "videos": {"urls": []}}
        details["steps"] = dict(details["steps"], res_rent_rental=dict(
            rental_steps()["res_rent_rental"], rentAmount=45000
        ))

        updated = await property_service.update_property(
            draft_property.id, PropertyUpdate(property_details=details), test_owner
        )

        assert updated.price == 45000
        assert updated.property_details["meta"]["id"] == str(draft_property.id)
        assert updated.property_details["meta"]["code"] == draft_property.code
        assert updated.property_details["media"]["photos"]["images"] == []

    @pytest.mark.asyncio
    async def test_replace_with_legacy_shape(self, property_service, draft_property, test_owner):
        with pytest.raises(ValidationError):
            await property_service.update_property(
                draft_property.id, PropertyUpdate(property_details={"title": "Flat", "rent": 1}), test_owner
            )

    @pytest.mark.asyncio
    async def test_owner_cannot_touch_public_tag(self, property_service, published_property, test_owner):
        updated = await property_service.update_property(
            published_property.id, PropertyUpdate(tags=["garden"]), test_owner
        )
        assert set(updated.tags) == {"garden", PUBLIC_TAG}

    @pytest.mark.asyncio
    async def test_delete(self, db_session, image_repository, property_service, draft_property, test_owner):
        await _with_image(db_session, image_repository, draft_property)

        assert await property_service.delete_property(draft_property.id, test_owner)
        assert await image_repository.count_by_property_id(draft_property.id) == 0
        with pytest.raises(PropertyNotFoundError):
            await property_service.get_property(draft_property.id, test_owner)


class TestPropertyDiscovery:
    """Search, similar and nearby listings."""

    @pytest.mark.asyncio
    async def test_search_maps_subtype_to_flow(self, db_session, property_service, test_owner):
        rental = await PropertyFactory.create_property(db_session, test_owner, status=PropertyStatus.PUBLISHED)
        await PropertyFactory.create_property(
            db_session, test_owner, flow_type=FlowType.LAND_SALE, steps=land_steps(), status=PropertyStatus.PUBLISHED
        )

        results, total = await property_service.search_properties(
            PropertySearchFilters(property_type="residential", subtype="apartment", transaction_type="rent")
        )
        assert total == 1
        assert results[0].id == rental.id

        _, total = await property_service.search_properties(PropertySearchFilters(transaction_type="buy"))
        assert total == 1

    @pytest.mark.asyncio
    async def test_bedrooms_is_a_minimum(self, db_session, property_service, test_owner):
        await PropertyFactory.create_property(
            db_session, test_owner, steps=rental_steps(bhk="3bhk"), status=PropertyStatus.PUBLISHED
        )
        await PropertyFactory.create_property(
            db_session, test_owner, steps=rental_steps(bhk="1bhk"), status=PropertyStatus.PUBLISHED
        )

        _, total = await property_service.search_properties(PropertySearchFilters(bedrooms=2))
        assert total == 1

    @pytest.mark.asyncio
    async def test_owner_filter_is_admin_only(self, property_service, test_owner, test_admin):
        filters = PropertySearchFilters(owner_id=str(test_owner.id))

        with pytest.raises(InsufficientPermissionsError):
            await property_service.search_properties(filters, test_owner)

        _, total = await property_service.search_properties(filters, test_admin)
        assert total == 0

    @pytest.mark.asyncio
    async def test_similar_properties(self, db_session, property_service, published_property, test_owner, other_owner):
        twin = await PropertyFactory.create_property(db_session, other_owner, status=PropertyStatus.PUBLISHED)
        await PropertyFactory.create_property(
            db_session, other_owner, steps=rental_steps(city="Pune", rent=90000, bhk="4bhk"),
            status=PropertyStatus.PUBLISHED
        )

        similar = await property_service.get_similar_properties(published_property.id)
        assert [(p.id, score) for p, score in similar] == [(twin.id, 1.0)]

        everything = await property_service.get_similar_properties(published_property.id, min_score=0)
        assert len(everything) == 2
        assert everything[1][1] == 0.4

    @pytest.mark.asyncio
    async def test_nearby_properties(self, db_session, property_service, published_property, test_owner):
        far_away = await PropertyFactory.create_property(
            db_session, test_owner, steps=rental_steps(latitude=28.6139, longitude=77.209),
            status=PropertyStatus.PUBLISHED
        )
        coordinates = CoordinateService(db_session)
        await coordinates.sync_property(published_property.id)
        await coordinates.sync_property(far_away.id)

        nearby = await property_service.get_nearby_properties(12.98, 77.6, radius_km=5)

        assert len(nearby) == 1
        assert nearby[0][0].id == published_property.id
        assert nearby[0][1] < 5

    @pytest.mark.asyncio
    async def test_nearby_radius_limits(self, property_service):
        with pytest.raises(ValidationError, match="Radius"):
            await property_service.get_nearby_properties(12.98, 77.6, radius_km=0)
        with pytest.raises(ValidationError, match="Radius"):
            await property_service.get_nearby_properties(12.98, 77.6, radius_km=150)
        with pytest.raises(ValidationError, match="Latitude"):
            await property_service.get_nearby_properties(91, 77.6)

    @pytest.mark.asyncio
    async def test_statistics_are_scoped(self, db_session, property_service, published_property, test_owner, other_owner, test_admin):
        await PropertyFactory.create_property(db_session, other_owner)

        assert (await property_service.get_property_statistics(test_owner))["total_properties"] == 1
        assert (await property_service.get_property_statistics(test_admin))["total_properties"] == 2

        with pytest.raises(InsufficientPermissionsError):
            await property_service.get_property_statistics(test_owner, other_owner.id)


class TestCoordinateService:
    """Coordinate sync and map queries."""

    @pytest.mark.asyncio
    async def test_sync_all(self, db_session, test_owner):
        await PropertyFactory.create_property(db_session, test_owner, status=PropertyStatus.PUBLISHED)
        await PropertyFactory.create_property(db_session, test_owner, steps={})
        await PropertyFactory.create_property(
            db_session, test_owner, steps=rental_steps(latitude=120, longitude=77.5)
        )

        service = CoordinateService(db_session)
        result = await service.sync_all(batch_size=2)

        assert result.total_properties == 3
        assert result.synced_count == 1
        assert result.skipped == 2
        assert result.errors == []

        stats = await service.get_migration_stats()
        assert stats == {"total": 3, "migrated": 1, "missing": 2, "percentage": 33.3}

    @pytest.mark.asyncio
    async def test_failed_write_is_recorded(self, db_session, monkeypatch, test_owner):
        for _ in range(3):
            await PropertyFactory.create_property(db_session, test_owner, status=PropertyStatus.PUBLISHED)

        service = CoordinateService(db_session)
        upsert = service.coordinates_repo.upsert
        calls = []

        async def fail_first_write(property_id, values):
            calls.append(property_id)
            if len(calls) == 1:
                await db_session.rollback()
                raise RuntimeError("disk full")
            return await upsert(property_id, values)

        monkeypatch.setattr(service.coordinates_repo, "upsert", fail_first_write)

        result = await service.sync_all(batch_size=10)

        assert result.total_properties == 3
        assert result.synced_count == 2
        assert result.skipped == 0
        assert result.errors == [{"property_id": str(calls[0]), "error": "disk full"}]
        assert (await service.get_migration_stats())["migrated"] == 2

    @pytest.mark.asyncio
    async def test_sync_clips_long_location_text(self, db_session, test_owner):
        steps = rental_steps(city="B" * 150)
        steps["res_rent_location"]["address"] = "A" * 500
        property_obj = await PropertyFactory.create_property(db_session, test_owner, steps=steps)

        outcome = await CoordinateService(db_session).sync_property(property_obj.id)

        assert outcome.synced
        assert len(outcome.coordinates.address) == 500
        assert outcome.coordinates.city == "B" * 100
        assert property_obj.city == "B" * 100
        assert len(property_obj.address) == 500

    @pytest.mark.asyncio
    async def test_skip_reasons(self, db_session, test_owner):
        empty = await PropertyFactory.create_property(db_session, test_owner, steps={})
        outcome = await CoordinateService(db_session).sync_property(empty.id)

        assert not outcome.synced
        assert outcome.reason == "No coordinates in the location step"

    @pytest.mark.asyncio
    async def test_map_markers(self, db_session, published_property):
        service = CoordinateService(db_session)
        await service.sync_property(published_property.id)

        markers = await service.find_in_bounds(12.0, 77.0, 13.5, 78.0)

        assert markers == [{
            "property_id": str(published_property.id),
            "code": published_property.code,
            "title": "Test Rental Property",
            "price": 25000.0,
            "latitude": 12.9716,
            "longitude": 77.5946,
        }]

    @pytest.mark.asyncio
    async def test_malformed_bounds(self, db_session):
        with pytest.raises(ValidationError, match="South edge"):
            await CoordinateService(db_session).find_in_bounds(14.0, 77.0, 13.0, 78.0)


class TestFavoriteService:
    """Likes."""

    @pytest.mark.asyncio
    async def test_like_is_idempotent(self, db_session, published_property, test_seeker):
        service = FavoriteService(db_session)
        first = await service.like_property(test_seeker, published_property.id)
        second = await service.like_property(test_seeker, published_property.id)

        assert first.id == second.id
        assert await service.like_count(published_property.id) == 1
        assert await service.is_liked(test_seeker, published_property.id)

        assert await service.unlike_property(test_seeker, published_property.id)
        assert not await service.unlike_property(test_seeker, published_property.id)

    @pytest.mark.asyncio
    async def test_concurrent_like_returns_the_stored_one(
        self, db_session, monkeypatch, published_property, test_seeker
    ):
        service = FavoriteService(db_session)
        lookup = service.favorite_repo.get_like
        calls = []

        async def like_stored_meanwhile(user_id, property_id):
            calls.append(user_id)
            if len(calls) == 1:
                await FavoriteRepository(db_session).create({"user_id": user_id, "property_id": property_id})
                return None
            return await lookup(user_id, property_id)

        monkeypatch.setattr(service.favorite_repo, "get_like", like_stored_meanwhile)
        property_id, seeker_id = published_property.id, test_seeker.id

        like = await service.like_property(test_seeker, property_id)

        assert like is not None
        assert like.user_id == seeker_id
        assert await service.like_count(property_id) == 1

    @pytest.mark.asyncio
    async def test_cannot_like_someone_elses_draft(self, db_session, draft_property, test_seeker, test_owner):
        service = FavoriteService(db_session)
        with pytest.raises(PropertyNotFoundError):
            await service.like_property(test_seeker, draft_property.id)

        await service.like_property(test_owner, draft_property.id)
        assert await service.get_liked_property_ids(test_owner) == [draft_property.id]

    @pytest.mark.asyncio
    async def test_like_summary(self, db_session, published_property, test_seeker, other_owner):
        service = FavoriteService(db_session)
        await service.like_property(test_seeker, published_property.id)
        await service.like_property(other_owner, published_property.id)

        counts, liked = await service.like_summary([published_property.id], test_seeker)
        assert counts == {published_property.id: 2}
        assert liked == {published_property.id}

        properties, total = await service.list_liked_properties(test_seeker)
        assert total == 1
        assert properties[0].id == published_property.id


class TestVisitService:
    """Visit requests and reports."""

    @staticmethod
    def _tomorrow():
        return datetime.now(timezone.utc) + timedelta(days=1)

    @pytest.mark.asyncio
    async def test_request_and_approve(self, db_session, published_property, test_seeker, test_owner):
        service = VisitService(db_session)
        visit = await service.request_visit(test_seeker, published_property.id, self._tomorrow(), "  Evening please ")

        assert visit.status == VisitStatus.PENDING
        assert visit.message == "Evening please"

        approved = await service.update_visit_status(visit.id, VisitStatus.APPROVED, test_owner)
        assert approved.status == VisitStatus.APPROVED

        with pytest.raises(PropertyStatusError, match="already approved"):
            await service.update_visit_status(visit.id, VisitStatus.REJECTED, test_owner)

    @pytest.mark.asyncio
    async def test_visit_rules(self, db_session, published_property, draft_property, test_seeker, test_owner):
        service = VisitService(db_session)

        with pytest.raises(ForbiddenError):
            await service.request_visit(test_owner, published_property.id, self._tomorrow())
        with pytest.raises(ValidationError, match="in the future"):
            await service.request_visit(test_seeker, published_property.id, datetime.now(timezone.utc) - timedelta(hours=1))
        with pytest.raises(PropertyNotFoundError):
            await service.request_visit(test_seeker, draft_property.id, self._tomorrow())

    @pytest.mark.asyncio
    async def test_only_requester_cancels(self, db_session, published_property, test_seeker, test_owner):
        service = VisitService(db_session)
        visit = await service.request_visit(test_seeker, published_property.id, self._tomorrow())

        with pytest.raises(InsufficientPermissionsError):
            await service.update_visit_status(visit.id, VisitStatus.CANCELLED, test_owner)
        with pytest.raises(InsufficientPermissionsError):
            await service.update_visit_status(visit.id, VisitStatus.APPROVED, test_seeker)

        cancelled = await service.update_visit_status(visit.id, VisitStatus.CANCELLED, test_seeker)
        assert cancelled.status == VisitStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_property_visits_for_owner(self, db_session, published_property, test_seeker, test_owner, other_owner):
        service = VisitService(db_session)
        await service.request_visit(test_seeker, published_property.id, self._tomorrow())

        assert len(await service.list_property_visits(published_property.id, test_owner)) == 1
        assert len(await service.list_my_visits(test_seeker)) == 1
        with pytest.raises(InsufficientPermissionsError):
            await service.list_property_visits(published_property.id, other_owner)

    @pytest.mark.asyncio
    async def test_reports(self, db_session, published_property, test_seeker, test_moderator):
        service = VisitService(db_session)
        report = await service.report_property(test_seeker, published_property.id, "fraud", "Asks for advance")

        with pytest.raises(ConflictError):
            await service.report_property(test_seeker, published_property.id, "duplicate")

        with pytest.raises(InsufficientPermissionsError):
            await service.list_reports(test_seeker)

        reports, total = await service.list_reports(test_moderator, status=ReportStatus.OPEN)
        assert total == 1
        assert reports[0].id == report.id

        resolved = await service.resolve_report(report.id, ReportStatus.RESOLVED, test_moderator)
        assert resolved.status == ReportStatus.RESOLVED
        assert resolved.resolved_by_id == test_moderator.id

        # the open report is closed, so a new one is accepted
        await service.report_property(test_seeker, published_property.id, "duplicate")


class TestModerationService:
    """Review queue and user management."""

    @pytest.mark.asyncio
    async def test_pending_queue(self, db_session, draft_property, published_property, test_moderator, test_owner):
        service = ModerationService(db_session)

        pending, total = await service.list_pending(test_moderator)
        assert total == 1
        assert pending[0].id == draft_property.id

        with pytest.raises(InsufficientPermissionsError):
            await service.list_pending(test_owner)

    @pytest.mark.asyncio
    async def test_approve_and_reject(self, db_session, draft_property, test_moderator):
        service = ModerationService(db_session)

        approved = await service.approve_property(draft_property.id, test_moderator)
        assert approved.status == PropertyStatus.PUBLISHED
        assert PUBLIC_TAG in approved.tags
        assert approved.property_details["meta"]["approvedBy"] == str(test_moderator.id)

        rejected = await service.reject_property(draft_property.id, "Photos are blurry", test_moderator)
        assert rejected.status == PropertyStatus.REJECTED
        assert PUBLIC_TAG not in rejected.tags
        assert rejected.rejection_reason == "Photos are blurry"
        assert "approvedBy" not in rejected.property_details["meta"]

    @pytest.mark.asyncio
    async def test_resubmission_waits_for_review(
        self, db_session, image_repository, draft_property, test_moderator, test_owner
    ):
        moderation = ModerationService(db_session)
        await moderation.reject_property(draft_property.id, "Missing photos", test_moderator)
        assert (await moderation.list_pending(test_moderator))[1] == 0
        await _with_image(db_session, image_repository, draft_property)

        resubmitted = await PropertyService(db_session).publish_property(draft_property.id, test_owner)
        assert resubmitted.status == PropertyStatus.DRAFT
        assert resubmitted.rejection_reason is None
        assert "resubmittedAt" in resubmitted.property_details["meta"]

        pending, total = await moderation.list_pending(test_moderator)
        assert total == 1
        assert pending[0].id == draft_property.id

        approved = await moderation.approve_property(draft_property.id, test_moderator)
        assert approved.status == PropertyStatus.PUBLISHED
        assert PUBLIC_TAG in approved.tags

    @pytest.mark.asyncio
    async def test_archived_cannot_be_approved(self, db_session, test_owner, test_moderator):
        archived = await PropertyFactory.create_property(db_session, test_owner, status=PropertyStatus.ARCHIVED)
        with pytest.raises(PropertyStatusError):
            await ModerationService(db_session).approve_property(archived.id, test_moderator)

    @pytest.mark.asyncio
    async def test_moderation_stats(self, db_session, draft_property, published_property, test_moderator):
        stats = await ModerationService(db_session).get_moderation_stats(test_moderator)

        assert stats["total"] == 2
        assert stats["pending"] == 1
        assert stats["approved"] == 1
        assert stats["recent"] == 2
        assert stats["unique_cities"] == 1
        assert stats["unique_owners"] == 1
        assert stats["recent_hours"] == 24

    @pytest.mark.asyncio
    async def test_role_changes(self, db_session, test_owner, test_admin, test_super_admin, test_moderator):
        service = ModerationService(db_session)

        updated = await service.update_user_role(test_owner.id, UserRole.PROPERTY_SEEKER, test_admin)
        assert updated.role == UserRole.PROPERTY_SEEKER

        with pytest.raises(ForbiddenError, match="Only super admins"):
            await service.update_user_role(test_owner.id, UserRole.ADMIN, test_admin)
        with pytest.raises(ForbiddenError, match="their own role"):
            await service.update_user_role(test_admin.id, UserRole.MODERATOR, test_admin)
        with pytest.raises(InsufficientPermissionsError):
            await service.update_user_role(test_owner.id, UserRole.PROPERTY_OWNER, test_moderator)

        promoted = await service.update_user_role(test_owner.id, UserRole.ADMIN, test_super_admin)
        assert promoted.role == UserRole.ADMIN

    @pytest.mark.asyncio
    async def test_status_changes(self, db_session, test_owner, test_admin, test_super_admin):
        service = ModerationService(db_session)

        deactivated = await service.update_user_status(test_owner.id, False, test_admin)
        assert not deactivated.is_active

        with pytest.raises(ForbiddenError, match="deactivate their own account"):
            await service.update_user_status(test_admin.id, False, test_admin)
        with pytest.raises(ForbiddenError, match="admin accounts"):
            await service.update_user_status(test_super_admin.id, False, test_admin)
