"""
Storage contract shared by the in-memory and relational backends.

Records cross this boundary as plain dicts. Lookups by id return ``None``
when nothing matches and deletes return ``False``; neither raises. Input is
trusted: validation happens in the HTTP layer before any call lands here.
"""
import logging
import re
from abc import ABC, abstractmethod

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE
)

EVENT_RETENTION_DAYS = 30

# how each family lists: (sort fields, newest first). Missing values sort last in ascending lists.
LIST_ORDER = {
    "events": (("date", "created_at", "id"), False),
    "team_members": (("created_at", "id"), False),
    "gallery_images": (("display_order", "created_at", "id"), False),
    "admins": (("username",), False),
    "registrations": (("created_at", "id"), False),
    "about_content": (("section",), False),
    "users": (("created_at", "id"), False),
    "polls": (("created_at", "id"), False),
    "poll_responses": (("created_at", "id"), False),
    "announcements": (("created_at", "id"), True),
    "announcement_replies": (("created_at", "id"), False),
    "course_library": (("created_at", "id"), False),
    "technofest": (("number", "created_at", "id"), False),
    "techfest_registrations": (("created_at", "id"), False),
    "registration_members": (("id",), False),
    "site_settings": (("key",), False),
}


class StorageError(Exception):
    pass


class StorageIntegrityError(StorageError):
    """A backend produced data it must never produce, e.g. a malformed key."""


def is_valid_uuid(value):
    return isinstance(value, str) and bool(UUID_PATTERN.match(value))


def with_team_count(registration, member_count):
    # the leader lives on the registration row itself
    return {**registration, "member_count": member_count + 1}


class Storage(ABC):
    # Events
    @abstractmethod
    def get_events(self): ...

    @abstractmethod
    def get_event(self, id): ...

    @abstractmethod
    def create_event(self, data): ...

    @abstractmethod
    def update_event(self, id, data): ...

    @abstractmethod
    def delete_event(self, id): ...

    @abstractmethod
    def cleanup_old_events(self):
        """Delete inactive events dated more than 30 days ago; return how many went."""

    @abstractmethod
    def unfeature_all_events(self): ...

    # Team members
    @abstractmethod
    def get_team_members(self): ...

    @abstractmethod
    def get_team_member(self, id): ...

    @abstractmethod
    def create_team_member(self, data): ...

    @abstractmethod
    def update_team_member(self, id, data): ...

    @abstractmethod
    def delete_team_member(self, id): ...

    # Gallery
    @abstractmethod
    def get_gallery_images(self): ...

    @abstractmethod
    def get_gallery_image(self, id): ...

    @abstractmethod
    def create_gallery_image(self, data): ...

    @abstractmethod
    def update_gallery_image(self, id, data): ...

    @abstractmethod
    def delete_gallery_image(self, id): ...

    # Admins
    @abstractmethod
    def get_admin(self, id): ...

    @abstractmethod
    def get_admin_by_username(self, username): ...

    @abstractmethod
    def create_admin(self, data): ...

    # Event registrations
    @abstractmethod
    def get_registrations(self): ...

    @abstractmethod
    def get_registrations_by_event(self, event_id): ...

    @abstractmethod
    def create_registration(self, data): ...

    @abstractmethod
    def update_registration_status(self, id, status): ...

    @abstractmethod
    def delete_registration(self, id): ...

    # About content
    @abstractmethod
    def get_about_content(self): ...

    @abstractmethod
    def get_about_content_by_section(self, section): ...

    @abstractmethod
    def update_about_content(self, section, data):
        """Insert or overwrite the row for ``section``."""

    # Users
    @abstractmethod
    def get_users(self): ...

    @abstractmethod
    def get_user(self, id): ...

    @abstractmethod
    def get_user_by_email(self, email): ...

    @abstractmethod
    def get_user_by_username(self, username): ...

    @abstractmethod
    def authenticate_user(self, username, password):
        """Return the user only for a matching password on an approved account."""

    @abstractmethod
    def create_user(self, data): ...

    @abstractmethod
    def update_user(self, id, data): ...

    @abstractmethod
    def delete_user(self, id): ...

    @abstractmethod
    def approve_user(self, id): ...

    @abstractmethod
    def bulk_create_users(self, users):
        """Create plain, unapproved accounts from ``{username, email, password}`` dicts."""

    # Polls
    @abstractmethod
    def get_polls(self): ...

    @abstractmethod
    def get_poll(self, id): ...

    @abstractmethod
    def create_poll(self, data): ...

    @abstractmethod
    def update_poll(self, id, data): ...

    @abstractmethod
    def delete_poll(self, id): ...

    @abstractmethod
    def get_poll_with_responses(self, id):
        """Return ``{"poll", "responses", "total_votes"}`` or None."""

    @abstractmethod
    def create_poll_response(self, data): ...

    @abstractmethod
    def get_user_poll_response(self, poll_id, user_id): ...

    @abstractmethod
    def get_poll_responses(self, poll_id): ...

    # Announcements
    @abstractmethod
    def get_announcements(self): ...

    @abstractmethod
    def get_announcement(self, id): ...

    @abstractmethod
    def create_announcement(self, data): ...

    @abstractmethod
    def update_announcement(self, id, data): ...

    @abstractmethod
    def delete_announcement(self, id): ...

    @abstractmethod
    def create_announcement_reply(self, data): ...

    @abstractmethod
    def get_announcement_replies(self, announcement_id): ...

    # Course library
    @abstractmethod
    def get_course_library(self): ...

    @abstractmethod
    def get_course(self, id): ...

    @abstractmethod
    def create_course(self, data): ...

    @abstractmethod
    def update_course(self, id, data): ...

    @abstractmethod
    def delete_course(self, id): ...

    # Technofest competition events
    @abstractmethod
    def get_technofest_events(self): ...

    @abstractmethod
    def get_technofest_event(self, id): ...

    @abstractmethod
    def get_technofest_event_by_slug(self, slug): ...

    @abstractmethod
    def create_technofest_event(self, data): ...

    @abstractmethod
    def update_technofest_event(self, id, data): ...

    @abstractmethod
    def delete_technofest_event(self, id):
        """Delete the event together with its registrations and their members."""

    @abstractmethod
    def get_technofest_events_by_category(self, category): ...

    @abstractmethod
    def get_active_technofest_events(self): ...

    # Techfest registrations
    @abstractmethod
    def get_techfest_registrations(self): ...

    @abstractmethod
    def get_techfest_registrations_with_team_counts(self): ...

    @abstractmethod
    def get_techfest_registration(self, id): ...

    @abstractmethod
    def get_techfest_registrations_by_event(self, technofest_id): ...

    @abstractmethod
    def create_techfest_registration(self, data): ...

    @abstractmethod
    def delete_techfest_registration(self, id): ...

    @abstractmethod
    def update_techfest_registration_status(self, id, status): ...

    @abstractmethod
    def register_team(self, registration, members):
        """Create a registration and its member rows as one unit of work.

        ``members`` omit ``registration_id``; it is filled in from the new row.
        Returns ``(registration, members)``.
        """

    # Registration members
    @abstractmethod
    def get_registration_members(self, registration_id): ...

    @abstractmethod
    def get_all_registration_members(self): ...

    @abstractmethod
    def create_registration_member(self, data): ...

    @abstractmethod
    def delete_registration_member(self, id): ...

    @abstractmethod
    def bulk_create_registration_members(self, members): ...

    # Site settings
    @abstractmethod
    def get_site_setting(self, key): ...

    @abstractmethod
    def set_site_setting(self, key, value): ...

    @abstractmethod
    def get_all_site_settings(self): ...

    # Lifecycle
    @abstractmethod
    def initialize_data(self):
        """Insert the baseline rows into an empty store."""

    @abstractmethod
    def test_database_connection(self): ...


def init_storage(app):
    """Pick the backend once for ``app`` and seed it."""
    from db_storage import DatabaseStorage
    from mem_storage import MemStorage
    from models import db

    url = app.config.get("DATABASE_URL")
    if url:
        app.config["SQLALCHEMY_DATABASE_URI"] = url
        db.init_app(app)
        storage = DatabaseStorage()
        with app.app_context():
            db.create_all()
            try:
                storage.initialize_data()
            except SQLAlchemyError:
                logger.exception("Seeding the database failed, starting with existing data")
        logger.info("Using relational storage")
    else:
        logger.info("No DATABASE_URL found, using in-memory storage")
        storage = MemStorage()
        storage.initialize_data()

    app.extensions["storage"] = storage
    return storage


def get_storage():
    return current_app.extensions["storage"]
