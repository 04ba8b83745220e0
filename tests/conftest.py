"""
Test configuration and fixtures for the property marketplace API.
Provides database fixtures, test data factories, and common test utilities.
"""

import os
import tempfile

# Settings are read on import, so the test environment goes first
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="marketplace-uploads-")
os.environ["ENABLE_RATE_LIMITING"] = "false"

import io
import uuid
from copy import deepcopy
from typing import AsyncGenerator, Dict, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import marketplace.models  # noqa: F401
from marketplace.main import app
from marketplace.database import Base, enable_sqlite_foreign_keys, get_db
from marketplace.flows.definitions import FlowType
from marketplace.models.image import PropertyImage
from marketplace.models.property import Property, PropertyStatus, PUBLIC_TAG
from marketplace.models.user import User, UserRole
from marketplace.repositories.image import ImageRepository
from marketplace.repositories.property import PropertyRepository
from marketplace.repositories.user import UserRepository
from marketplace.schemas.property import PropertyCreate
from marketplace.services.auth import AuthService
from marketplace.services.property import PropertyService
from marketplace.utils.auth import create_access_token


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "testpassword123"


@pytest.fixture
async def test_engine():
    """A fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine.sync_engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async test client; every request gets its own session on the test database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# Repository fixtures
@pytest.fixture
def user_repository(db_session: AsyncSession) -> UserRepository:
    return UserRepository(db_session)


@pytest.fixture
def property_repository(db_session: AsyncSession) -> PropertyRepository:
    return PropertyRepository(db_session)


@pytest.fixture
def image_repository(db_session: AsyncSession) -> ImageRepository:
    return ImageRepository(db_session)


# Service fixtures
@pytest.fixture
def auth_service(db_session: AsyncSession) -> AuthService:
    return AuthService(db_session)


@pytest.fixture
def property_service(db_session: AsyncSession) -> PropertyService:
    return PropertyService(db_session)


# Wizard step data
def rental_steps(
    city: str = "Bangalore",
    rent: int = 25000,
    bhk: str = "2bhk",
    latitude: float = 12.9716,
    longitude: float = 77.5946,
    title: Optional[str] = "Test Rental Property",
) -> Dict[str, Dict]:
    """Complete, valid residential rent steps."""
    basic = {
        "propertyType": "apartment",
        "bhkType": bhk,
        "floor": 0,
        "totalFloors": 4,
        "builtUpArea": 1000,
        "bathrooms": 2,
        "facing": "north",
        "propertyAge": "1_3_years",
    }
    if title:
        basic["title"] = title

    return {
        "res_rent_basic_details": basic,
        "res_rent_location": {
            "address": "42 Test Street, Test Layout",
            "city": city,
            "state": "Karnataka",
            "pinCode": "560001",
            "coordinates": {"latitude": latitude, "longitude": longitude},
        },
        "res_rent_rental": {
            "rentAmount": rent,
            "securityDeposit": rent * 3,
            "availableFrom": "2026-12-01",
            "furnishingStatus": "semi_furnished",
            "preferredTenants": ["family"],
        },
        "res_rent_features": {
            "amenities": ["parking", "security"],
            "petFriendly": False,
        },
    }


def land_steps(city: str = "Hyderabad", price: int = 2500000, title: Optional[str] = None) -> Dict[str, Dict]:
    """Complete, valid land sale steps; the title is optional."""
    basic = {
        "landType": "agricultural",
        "area": 5000,
        "areaUnit": "sqft",
        "expectedPrice": price,
    }
    if title:
        basic["title"] = title

    return {
        "land_sale_basic_details": basic,
        "land_sale_location": {
            "address": "Survey No 12, Outer Ring Road",
            "city": city,
            "state": "Telangana",
            "pinCode": "500032",
            "coordinates": {"latitude": 17.385, "longitude": 78.4867},
        },
        "land_sale_land_features": {
            "approvals": ["dtcp"],
            "boundaryStatus": "clear",
            "roadAccess": "paved_road",
        },
    }


def png_bytes(width: int = 64, height: int = 48, color: str = "red") -> bytes:
    """A small valid PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def jpeg_bytes(width: int = 64, height: int = 48) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "blue").save(buffer, format="JPEG")
    return buffer.getvalue()


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(user_id=user.id, email=user.email, role=user.role)
    return {"Authorization": f"Bearer {token}"}


# Test data factories
class UserFactory:
    """Factory for creating test users."""

    @staticmethod
    def create_user_data(
        email: str = None,
        password: str = TEST_PASSWORD,
        full_name: str = "Test User",
        role: UserRole = UserRole.PROPERTY_OWNER,
        is_active: bool = True
    ) -> dict:
        return {
            "email": email or f"test{uuid.uuid4().hex[:8]}@example.com",
            "password": password,
            "full_name": full_name,
            "role": role,
            "is_active": is_active
        }

    @staticmethod
    async def create_user(
        user_repo: UserRepository,
        email: str = None,
        password: str = TEST_PASSWORD,
        full_name: str = "Test User",
        role: UserRole = UserRole.PROPERTY_OWNER,
        is_active: bool = True
    ) -> User:
        """Create a test user in the database."""
        user_data = UserFactory.create_user_data(
            email=email,
            password=password,
            full_name=full_name,
            role=role,
            is_active=is_active
        )
        return await user_repo.create_user(user_data)


class PropertyFactory:
    """Factory for creating test properties through the wizard service."""

    @staticmethod
    async def create_property(
        db_session: AsyncSession,
        owner: User,
        flow_type: FlowType = FlowType.RESIDENTIAL_RENT,
        steps: Optional[Dict[str, Dict]] = None,
        status: PropertyStatus = PropertyStatus.DRAFT,
        public: bool = False,
        description: str = "A well kept test property",
        tags: Optional[list] = None
    ) -> Property:
        """
        Create a property; published or archived statuses are set directly
        so tests don't need images for every listing.
        """
        if steps is None:
            steps = rental_steps() if flow_type == FlowType.RESIDENTIAL_RENT else {}

        property_obj = await PropertyService(db_session).create_property(
            PropertyCreate(
                flow_type=flow_type,
                steps=deepcopy(steps),
                description=description,
                tags=tags or [],
            ),
            owner,
        )

        values = {}
        if status != PropertyStatus.DRAFT:
            values["status"] = status
        if public:
            values["tags"] = list(property_obj.tags or []) + [PUBLIC_TAG]
        if values:
            property_obj = await PropertyRepository(db_session).update_instance(property_obj, values)
        return property_obj


class ImageFactory:
    """Factory for creating image records without files on disk."""

    @staticmethod
    async def create_image(
        image_repo: ImageRepository,
        property_id: uuid.UUID,
        filename: str = "test_image.png",
        file_path: str = None,
        file_size: int = 2048,
        mime_type: str = "image/png",
        width: int = 64,
        height: int = 48,
        is_primary: bool = False,
        display_order: int = 0
    ) -> PropertyImage:
        if file_path is None:
            file_path = f"properties/{property_id}/{uuid.uuid4().hex}.png"

        return await image_repo.create({
            "property_id": property_id,
            "filename": filename,
            "file_path": file_path,
            "file_size": file_size,
            "mime_type": mime_type,
            "width": width,
            "height": height,
            "is_primary": is_primary,
            "display_order": display_order
        })


# Common test fixtures
@pytest.fixture
async def test_owner(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="owner@test.com",
        full_name="Test Owner",
        role=UserRole.PROPERTY_OWNER
    )


@pytest.fixture
async def other_owner(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="other.owner@test.com",
        full_name="Other Owner",
        role=UserRole.PROPERTY_OWNER
    )


@pytest.fixture
async def test_seeker(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="seeker@test.com",
        full_name="Test Seeker",
        role=UserRole.PROPERTY_SEEKER
    )


@pytest.fixture
async def test_moderator(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="moderator@test.com",
        full_name="Test Moderator",
        role=UserRole.MODERATOR
    )


@pytest.fixture
async def test_admin(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="admin@test.com",
        full_name="Test Admin",
        role=UserRole.ADMIN
    )


@pytest.fixture
async def test_super_admin(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="root@test.com",
        full_name="Test Super Admin",
        role=UserRole.SUPER_ADMIN
    )


@pytest.fixture
async def test_inactive_user(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="inactive@test.com",
        full_name="Inactive User",
        is_active=False
    )


@pytest.fixture
async def draft_property(db_session: AsyncSession, test_owner: User) -> Property:
    return await PropertyFactory.create_property(db_session, test_owner)


@pytest.fixture
async def published_property(db_session: AsyncSession, test_owner: User) -> Property:
    return await PropertyFactory.create_property(
        db_session, test_owner, status=PropertyStatus.PUBLISHED, public=True
    )


def error_body(response) -> dict:
    """The error envelope of a failed response."""
    body = response.json()
    assert "error" in body, body
    return body["error"]
