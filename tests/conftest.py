import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from program_site import auth, database, models
from program_site.main import app
from program_site.slugs import slugify

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
database.enable_sqlite_foreign_keys(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TODAY = date.today()


def days_from_today(days):
    return TODAY + timedelta(days=days)


class Factory:
    """Small helpers to put rows in the test database."""

    def __init__(self, db):
        self.db = db

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def city(self, name, slug=None, image_url=None):
        return self._save(models.City(name=name, slug=slug, image_url=image_url))

    def venue(self, name, city=None, slug=None, google_maps_url=None):
        return self._save(models.Venue(
            name=name,
            slug=slug or slugify(name),
            city_id=city.id if city else None,
            google_maps_url=google_maps_url,
        ))

    def contact(self, name, city=None, email=None, phone="+91 90000 00000", whatsapp=None):
        return self._save(models.Contact(
            name=name,
            email=email or f"{slugify(name)}@example.org",
            phone=phone,
            whatsapp=whatsapp,
            city_id=city.id if city else None,
        ))

    def program(self, name, parent=None, details_external=False, slug=None, external_link=None):
        return self._save(models.Program(
            name=name,
            slug=slug or slugify(name),
            parent_id=parent.id if parent else None,
            details_external=details_external,
            external_link=external_link,
        ))

    def session(self, program, start_date, venue=None, contact=None, is_published=True, **fields):
        return self._save(models.ProgramSession(
            program_id=program.id if program else None,
            venue_id=venue.id if venue else None,
            contact_id=contact.id if contact else None,
            start_date=start_date,
            is_published=is_published,
            **fields,
        ))

    def user(self, username="admin", password="secret"):
        return self._save(models.User(username=username, hashed_password=auth.get_password_hash(password)))


@pytest.fixture
def db():
    models.Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        models.Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make(db):
    return Factory(db)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[database.get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client, make):
    user = make.user()
    token = auth.create_access_token(data={"sub": user.username})
    client.headers.update({"Authorization": f"Bearer {token}"})
    return client
