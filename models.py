import sqlite3
import uuid
from datetime import datetime, timezone

from flask_bcrypt import Bcrypt
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()
bcrypt = Bcrypt()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return str(uuid.uuid4())


def hash_password(password):
    if password is None:
        return None
    return bcrypt.generate_password_hash(password).decode("utf-8")


def check_password(hashed, password):
    if not hashed or password is None:
        return False
    return bcrypt.check_password_hash(hashed, password)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless this is switched on per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class LenientDateTime(db.TypeDecorator):
    """DateTime that reads an unparseable stored value as None instead of raising."""

    impl = db.DateTime
    cache_ok = True

    def result_processor(self, dialect, coltype):
        parse = super().result_processor(dialect, coltype)
        if parse is None:
            return None

        def process(value):
            try:
                return parse(value)
            except (TypeError, ValueError):
                return None

        return process


class RecordMixin:
    def to_dict(self):
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class Event(RecordMixin, db.Model):
    __tablename__ = "events"

    id = db.Column(db.String(36), primary_key=True)
    title = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=False)
    date = db.Column(LenientDateTime, nullable=False)
    location = db.Column(db.Text, nullable=False)
    tags = db.Column(db.JSON, default=list)
    image_url = db.Column(db.Text)
    featured = db.Column(db.Integer, default=0)
    is_active = db.Column(db.Boolean, default=True)
    current_participants = db.Column(db.Integer, default=0)
    registration_type = db.Column(db.String(20), default="dialog")
    registration_url = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


class TeamMember(RecordMixin, db.Model):
    __tablename__ = "team_members"

    id = db.Column(db.String(36), primary_key=True)
    name = db.Column(db.Text, nullable=False)
    position = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=False)
    image_url = db.Column(db.Text)
    social_links = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=utcnow)


class GalleryImage(RecordMixin, db.Model):
    __tablename__ = "gallery_images"

    id = db.Column(db.String(36), primary_key=True)
    title = db.Column(db.Text, nullable=False)
    image_url = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text)
    # soft reference, galleries outlive their events
    event_id = db.Column(db.String(36))
    is_main_image = db.Column(db.Boolean, default=False)
    display_order = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)


class Admin(RecordMixin, db.Model):
    __tablename__ = "admins"

    id = db.Column(db.String(36), primary_key=True)
    username = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)


class Registration(RecordMixin, db.Model):
    __tablename__ = "registrations"

    id = db.Column(db.String(36), primary_key=True)
    event_id = db.Column(db.String(36), nullable=False)
    name = db.Column(db.Text, nullable=False)
    email = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(40))
    status = db.Column(db.String(20), default="pending")
    created_at = db.Column(db.DateTime, default=utcnow)


class AboutContent(RecordMixin, db.Model):
    __tablename__ = "about_content"

    id = db.Column(db.String(36), primary_key=True)
    section = db.Column(db.String(80), unique=True, nullable=False)
    title = db.Column(db.Text, nullable=False)
    content = db.Column(db.Text, nullable=False)
    image_url = db.Column(db.Text)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


class User(RecordMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True)
    username = db.Column(db.String(120), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(200))
    role = db.Column(db.String(20), nullable=False, default="user")  # user / coordinator / super_admin
    is_approved = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


class Poll(RecordMixin, db.Model):
    __tablename__ = "polls"

    id = db.Column(db.String(36), primary_key=True)
    title = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text)
    options = db.Column(db.JSON, nullable=False)
    created_by = db.Column(db.String(36), nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


class PollResponse(RecordMixin, db.Model):
    __tablename__ = "poll_responses"

    id = db.Column(db.String(36), primary_key=True)
    poll_id = db.Column(db.String(36), nullable=False, index=True)
    user_id = db.Column(db.String(36), nullable=False)
    username = db.Column(db.String(120), nullable=False)
    selected_option = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)


class Announcement(RecordMixin, db.Model):
    __tablename__ = "announcements"

    id = db.Column(db.String(36), primary_key=True)
    title = db.Column(db.Text, nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_by = db.Column(db.String(36), nullable=False)
    is_important = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


class AnnouncementReply(RecordMixin, db.Model):
    __tablename__ = "announcement_replies"

    id = db.Column(db.String(36), primary_key=True)
    announcement_id = db.Column(db.String(36), nullable=False, index=True)
    user_id = db.Column(db.String(36), nullable=False)
    username = db.Column(db.String(120), nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)


class CourseLibrary(RecordMixin, db.Model):
    __tablename__ = "course_library"

    id = db.Column(db.String(36), primary_key=True)
    title = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text)
    image_url = db.Column(db.Text)
    course_url = db.Column(db.Text, nullable=False)
    created_by = db.Column(db.String(36), nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


# Technofest family: ids come from the column default at insert time
class Technofest(RecordMixin, db.Model):
    __tablename__ = "technofest"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    slug = db.Column(db.Text, unique=True)
    name = db.Column(db.Text, nullable=False)
    number = db.Column(db.Integer)
    category = db.Column(db.Text, nullable=False)
    short_description = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=False)
    rules = db.Column(db.JSON, nullable=False, default=list)
    youtube_url = db.Column(db.Text)
    team_min = db.Column(db.SmallInteger, nullable=False)
    team_max = db.Column(db.SmallInteger, nullable=False)
    spline_right_url = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    registrations = db.relationship(
        "TechfestRegistration", back_populates="technofest", cascade="all, delete-orphan"
    )


class TechfestRegistration(RecordMixin, db.Model):
    __tablename__ = "techfest_registrations"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    technofest_id = db.Column(
        db.String(36), db.ForeignKey("technofest.id", ondelete="CASCADE"), nullable=False, index=True
    )
    team_name = db.Column(db.Text, nullable=False)
    team_leader_name = db.Column(db.Text, nullable=False)
    team_leader_email = db.Column(db.Text, nullable=False)
    contact_email = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), default="pending")
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    technofest = db.relationship("Technofest", back_populates="registrations")
    members = db.relationship(
        "RegistrationMember", back_populates="registration", cascade="all, delete-orphan"
    )


class RegistrationMember(RecordMixin, db.Model):
    __tablename__ = "registration_members"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    registration_id = db.Column(
        db.String(36),
        db.ForeignKey("techfest_registrations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.Text, nullable=False)
    email = db.Column(db.Text)

    registration = db.relationship("TechfestRegistration", back_populates="members")


class SiteSetting(RecordMixin, db.Model):
    __tablename__ = "site_settings"

    key = db.Column(db.String(120), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
