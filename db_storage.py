import logging
from contextlib import contextmanager
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError

import seed
from models import (
    Admin,
    AboutContent,
    Announcement,
    AnnouncementReply,
    CourseLibrary,
    Event,
    GalleryImage,
    Poll,
    PollResponse,
    Registration,
    RegistrationMember,
    SiteSetting,
    TeamMember,
    Technofest,
    TechfestRegistration,
    User,
    check_password,
    db,
    hash_password,
    new_id,
    utcnow,
)
from storage import (
    EVENT_RETENTION_DAYS,
    LIST_ORDER,
    Storage,
    StorageIntegrityError,
    is_valid_uuid,
    with_team_count,
)

logger = logging.getLogger(__name__)

TABLE_MODELS = {
    "events": Event,
    "team_members": TeamMember,
    "gallery_images": GalleryImage,
    "admins": Admin,
    "registrations": Registration,
    "about_content": AboutContent,
    "users": User,
    "polls": Poll,
    "poll_responses": PollResponse,
    "announcements": Announcement,
    "announcement_replies": AnnouncementReply,
    "course_library": CourseLibrary,
    "technofest": Technofest,
    "techfest_registrations": TechfestRegistration,
    "registration_members": RegistrationMember,
    "site_settings": SiteSetting,
}

DATE_FALLBACK = timedelta(days=7)


def _require_db():
    if "sqlalchemy" not in current_app.extensions:
        raise StorageIntegrityError("Database connection not available")


@contextmanager
def _transaction():
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def _check_key(row):
    if not is_valid_uuid(row.id):
        logger.error("Invalid UUID generated for %s: %r", row.__tablename__, row.id)
        raise StorageIntegrityError(f"Invalid UUID generated for {row.__tablename__}")


def _ordering(model):
    fields, newest_first = LIST_ORDER[model.__tablename__]
    clauses = []
    for name in fields:
        column = getattr(model, name)
        for clause in (column.is_(None), column):
            clauses.append(clause.desc() if newest_first else clause)
    return clauses


def _repair_date(event):
    # rows written before dates were validated may hold junk; show them a week out
    if not isinstance(event.get("date"), datetime):
        logger.warning("Fixing invalid date for event %s", event.get("id"))
        event["date"] = utcnow() + DATE_FALLBACK
    return event


class DatabaseStorage(Storage):
    """Storage on the Flask-SQLAlchemy session; needs an app context."""

    def initialize_data(self):
        _require_db()
        seed.seed(self, lambda name: TABLE_MODELS[name].query.first() is None)

    # -------------------- helpers --------------------

    def _all(self, model, **filters):
        query = model.query.filter_by(**filters).order_by(*_ordering(model))
        return [row.to_dict() for row in query.all()]

    def _first(self, model, **filters):
        row = model.query.filter_by(**filters).first()
        return row.to_dict() if row else None

    def _get(self, model, key):
        row = db.session.get(model, key)
        return row.to_dict() if row else None

    def _create(self, model, data, generate_id=True):
        row = model(**data)
        if generate_id:
            row.id = new_id()
        with _transaction():
            db.session.add(row)
        return row.to_dict()

    def _update(self, model, key, data):
        row = db.session.get(model, key)
        if row is None:
            return None
        with _transaction():
            for field, value in data.items():
                setattr(row, field, value)
            if hasattr(row, "updated_at"):
                row.updated_at = utcnow()
        return row.to_dict()

    def _delete(self, model, key):
        row = db.session.get(model, key)
        if row is None:
            return False
        with _transaction():
            db.session.delete(row)
        return True

    # -------------------- events --------------------

    def get_events(self):
        return [_repair_date(event) for event in self._all(Event)]

    def get_event(self, id):
        event = self._get(Event, id)
        return _repair_date(event) if event else None

    def create_event(self, data):
        return self._create(Event, data)

    def update_event(self, id, data):
        if "date" in data and not isinstance(data["date"], datetime):
            logger.warning("Removing invalid date from update of event %s", id)
            data = {k: v for k, v in data.items() if k != "date"}
        event = self._update(Event, id, data)
        return _repair_date(event) if event else None

    def delete_event(self, id):
        return self._delete(Event, id)

    def cleanup_old_events(self):
        cutoff = utcnow() - timedelta(days=EVENT_RETENTION_DAYS)
        with _transaction():
            deleted = Event.query.filter(Event.date < cutoff, Event.is_active.is_(False)).delete(
                synchronize_session=False
            )
        return deleted

    def unfeature_all_events(self):
        with _transaction():
            Event.query.filter(Event.featured != 0).update(
                {"featured": 0, "updated_at": utcnow()}, synchronize_session=False
            )

    # -------------------- team members --------------------

    def get_team_members(self):
        return self._all(TeamMember)

    def get_team_member(self, id):
        return self._get(TeamMember, id)

    def create_team_member(self, data):
        return self._create(TeamMember, data)

    def update_team_member(self, id, data):
        return self._update(TeamMember, id, data)

    def delete_team_member(self, id):
        return self._delete(TeamMember, id)

    # -------------------- gallery --------------------

    def get_gallery_images(self):
        return self._all(GalleryImage)

    def get_gallery_image(self, id):
        return self._get(GalleryImage, id)

    def create_gallery_image(self, data):
        return self._create(GalleryImage, data)

    def update_gallery_image(self, id, data):
        return self._update(GalleryImage, id, data)

    def delete_gallery_image(self, id):
        return self._delete(GalleryImage, id)

    # -------------------- admins --------------------

    def get_admin(self, id):
        return self._get(Admin, id)

    def get_admin_by_username(self, username):
        return self._first(Admin, username=username)

    def create_admin(self, data):
        return self._create(Admin, {**data, "password": hash_password(data["password"])})

    # -------------------- registrations --------------------

    def get_registrations(self):
        return self._all(Registration)

    def get_registrations_by_event(self, event_id):
        return self._all(Registration, event_id=event_id)

    def create_registration(self, data):
        return self._create(Registration, data)

    def update_registration_status(self, id, status):
        return self._update(Registration, id, {"status": status})

    def delete_registration(self, id):
        return self._delete(Registration, id)

    # -------------------- about content --------------------

    def get_about_content(self):
        return self._all(AboutContent)

    def get_about_content_by_section(self, section):
        return self._first(AboutContent, section=section)

    def update_about_content(self, section, data):
        existing = AboutContent.query.filter_by(section=section).first()
        if existing:
            return self._update(AboutContent, existing.id, data)
        return self._create(AboutContent, {**data, "section": section})

    # -------------------- users --------------------

    def get_users(self):
        return self._all(User)

    def get_user(self, id):
        return self._get(User, id)

    def get_user_by_email(self, email):
        return self._first(User, email=email)

    def get_user_by_username(self, username):
        return self._first(User, username=username)

    def authenticate_user(self, username, password):
        logger.info("Attempting to authenticate user: %s", username)
        user = User.query.filter_by(username=username).first()
        if user and user.is_approved and check_password(user.password, password):
            logger.info("Authentication successful for user: %s", username)
            return user.to_dict()
        logger.info("Authentication failed for user: %s", username)
        return None

    def create_user(self, data):
        return self._create(User, {**data, "password": hash_password(data.get("password"))})

    def update_user(self, id, data):
        if "password" in data:
            data = {**data, "password": hash_password(data["password"])}
        return self._update(User, id, data)

    def delete_user(self, id):
        return self._delete(User, id)

    def approve_user(self, id):
        return self._update(User, id, {"is_approved": True})

    def bulk_create_users(self, users):
        rows = [
            User(
                id=new_id(),
                username=user["username"],
                email=user["email"],
                password=hash_password(user["password"]),
                role="user",
                is_approved=False,
            )
            for user in users
        ]
        with _transaction():
            db.session.add_all(rows)
        return [row.to_dict() for row in rows]

    # -------------------- polls --------------------

    def get_polls(self):
        return self._all(Poll)

    def get_poll(self, id):
        return self._get(Poll, id)

    def create_poll(self, data):
        return self._create(Poll, data)

    def update_poll(self, id, data):
        return self._update(Poll, id, data)

    def delete_poll(self, id):
        poll = db.session.get(Poll, id)
        if poll is None:
            return False
        with _transaction():
            PollResponse.query.filter_by(poll_id=id).delete(synchronize_session=False)
            db.session.delete(poll)
        return True

    def get_poll_with_responses(self, id):
        poll = self.get_poll(id)
        if poll is None:
            return None
        responses = self.get_poll_responses(id)
        return {"poll": poll, "responses": responses, "total_votes": len(responses)}

    def create_poll_response(self, data):
        return self._create(PollResponse, data)

    def get_user_poll_response(self, poll_id, user_id):
        return self._first(PollResponse, poll_id=poll_id, user_id=user_id)

    def get_poll_responses(self, poll_id):
        return self._all(PollResponse, poll_id=poll_id)

    # -------------------- announcements --------------------

    def get_announcements(self):
        return self._all(Announcement)

    def get_announcement(self, id):
        return self._get(Announcement, id)

    def create_announcement(self, data):
        return self._create(Announcement, data)

    def update_announcement(self, id, data):
        return self._update(Announcement, id, data)

    def delete_announcement(self, id):
        announcement = db.session.get(Announcement, id)
        if announcement is None:
            return False
        with _transaction():
            AnnouncementReply.query.filter_by(announcement_id=id).delete(synchronize_session=False)
            db.session.delete(announcement)
        return True

    def create_announcement_reply(self, data):
        return self._create(AnnouncementReply, data)

    def get_announcement_replies(self, announcement_id):
        return self._all(AnnouncementReply, announcement_id=announcement_id)

    # -------------------- course library --------------------

    def get_course_library(self):
        return self._all(CourseLibrary)

    def get_course(self, id):
        return self._get(CourseLibrary, id)

    def create_course(self, data):
        return self._create(CourseLibrary, data)

    def update_course(self, id, data):
        return self._update(CourseLibrary, id, data)

    def delete_course(self, id):
        return self._delete(CourseLibrary, id)

    # -------------------- technofest --------------------

    def get_technofest_events(self):
        return self._all(Technofest)

    def get_technofest_event(self, id):
        return self._get(Technofest, id)

    def get_technofest_event_by_slug(self, slug):
        return self._first(Technofest, slug=slug)

    def create_technofest_event(self, data):
        return self._create(Technofest, data, generate_id=False)

    def update_technofest_event(self, id, data):
        return self._update(Technofest, id, data)

    def delete_technofest_event(self, id):
        # registrations and their members go with it (FK + ORM cascade)
        return self._delete(Technofest, id)

    def get_technofest_events_by_category(self, category):
        return self._all(Technofest, category=category)

    def get_active_technofest_events(self):
        return self._all(Technofest, is_active=True)

    # -------------------- techfest registrations --------------------

    def get_techfest_registrations(self):
        return self._all(TechfestRegistration)

    def get_techfest_registrations_with_team_counts(self):
        counts = dict(
            db.session.query(RegistrationMember.registration_id, func.count(RegistrationMember.id))
            .group_by(RegistrationMember.registration_id)
            .all()
        )
        return [
            with_team_count(registration, counts.get(registration["id"], 0))
            for registration in self.get_techfest_registrations()
        ]

    def get_techfest_registration(self, id):
        return self._get(TechfestRegistration, id)

    def get_techfest_registrations_by_event(self, technofest_id):
        return self._all(TechfestRegistration, technofest_id=technofest_id)

    def create_techfest_registration(self, data):
        _require_db()
        registration = TechfestRegistration(**data)
        with _transaction():
            db.session.add(registration)
            db.session.flush()
            _check_key(registration)
        logger.info("Registration created with ID: %s", registration.id)
        return registration.to_dict()

    def delete_techfest_registration(self, id):
        return self._delete(TechfestRegistration, id)

    def update_techfest_registration_status(self, id, status):
        return self._update(TechfestRegistration, id, {"status": status})

    def register_team(self, registration, members):
        _require_db()
        parent = TechfestRegistration(**registration)
        with _transaction():
            db.session.add(parent)
            db.session.flush()
            _check_key(parent)
            rows = [RegistrationMember(registration_id=parent.id, **member) for member in members]
            db.session.add_all(rows)
        logger.info("Registered team %s with %d extra members", parent.id, len(rows))
        return parent.to_dict(), [row.to_dict() for row in rows]

    # -------------------- registration members --------------------

    def get_registration_members(self, registration_id):
        return self._all(RegistrationMember, registration_id=registration_id)

    def get_all_registration_members(self):
        return self._all(RegistrationMember)

    def create_registration_member(self, data):
        return self._create(RegistrationMember, data, generate_id=False)

    def delete_registration_member(self, id):
        return self._delete(RegistrationMember, id)

    def bulk_create_registration_members(self, members):
        rows = [RegistrationMember(**member) for member in members]
        with _transaction():
            db.session.add_all(rows)
        return [row.to_dict() for row in rows]

    # -------------------- site settings --------------------

    def get_site_setting(self, key):
        setting = db.session.get(SiteSetting, key)
        return setting.value if setting else None

    def set_site_setting(self, key, value):
        with _transaction():
            setting = db.session.get(SiteSetting, key)
            if setting is None:
                db.session.add(SiteSetting(key=key, value=value))
            else:
                setting.value = value
                setting.updated_at = utcnow()

    def get_all_site_settings(self):
        return self._all(SiteSetting)

    def test_database_connection(self):
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database connection test failed")
            return False
        logger.info("Database connection test successful")
        return True
