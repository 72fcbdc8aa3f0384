"""
Input schemas for the club portal API.

Each Pydantic model describes the payload a handler accepts before it hands
the data to storage. ``*Create`` models carry the defaults applied on insert;
the matching ``*Update`` models make every field optional so a PATCH only
touches the fields that were actually sent.
"""
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, EmailStr, Field, create_model, field_validator, model_validator

Status = Literal["pending", "approved", "rejected"]
Role = Literal["user", "coordinator", "super_admin"]


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str
    date: datetime = Field(..., description="Event date and time (ISO 8601)")
    location: str
    tags: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    featured: int = Field(0, ge=0, le=1)
    is_active: bool = True
    current_participants: int = Field(0, ge=0)
    registration_type: Literal["dialog", "external"] = "dialog"
    registration_url: Optional[str] = None

    @field_validator("date")
    @classmethod
    def _date_to_utc(cls, value):
        return _naive_utc(value)

    @field_validator("featured", mode="before")
    @classmethod
    def _featured_as_int(cls, value):
        if isinstance(value, bool):
            return int(value)
        return value


class TeamMemberCreate(BaseModel):
    name: str = Field(..., min_length=1)
    position: str
    description: str
    image_url: Optional[str] = None
    social_links: Dict[str, str] = Field(default_factory=dict)


class GalleryImageCreate(BaseModel):
    title: str = Field(..., min_length=1)
    image_url: str
    description: Optional[str] = None
    event_id: str
    is_main_image: bool = False
    display_order: int = 0


class AdminCreate(BaseModel):
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    email: EmailStr


class RegistrationCreate(BaseModel):
    event_id: str
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    status: Status = "pending"


class AboutContentCreate(BaseModel):
    title: str
    content: str
    image_url: Optional[str] = None


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3)
    email: EmailStr
    password: Optional[str] = Field(None, min_length=6)
    role: Role = "user"
    is_approved: bool = False


class UserSignup(BaseModel):
    username: str = Field(..., min_length=3)
    email: EmailStr
    password: str = Field(..., min_length=6)


class PollCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    options: List[str] = Field(..., min_length=2)
    created_by: str
    is_active: bool = True


class PollResponseCreate(BaseModel):
    username: str
    selected_option: int = Field(..., ge=0)


class AnnouncementCreate(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    created_by: str
    is_important: bool = False


class AnnouncementReplyCreate(BaseModel):
    username: str
    content: str = Field(..., min_length=1)


class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None
    course_url: str
    created_by: str
    is_active: bool = True


class TechnofestCreate(BaseModel):
    slug: Optional[str] = None
    name: str = Field(..., min_length=1)
    number: Optional[int] = None
    category: str
    short_description: str
    description: str
    rules: List[str] = Field(default_factory=list)
    youtube_url: Optional[str] = None
    team_min: int = Field(..., ge=1)
    team_max: int = Field(..., ge=1)
    spline_right_url: Optional[str] = None
    is_active: bool = True

    @model_validator(mode="after")
    def _team_bounds(self):
        if self.team_min is not None and self.team_max is not None and self.team_min > self.team_max:
            raise ValueError("team_min must not exceed team_max")
        return self


class TeamMemberEntry(BaseModel):
    name: str = ""
    email: Optional[EmailStr] = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        if value is None:
            return ""
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def _blank_email(cls, value):
        if isinstance(value, str):
            value = value.strip()
        return value or None


class TechfestSignup(BaseModel):
    """Public team registration: the first member is the team leader."""
    team_name: str = Field(..., min_length=1)
    contact_email: EmailStr
    members: List[TeamMemberEntry] = Field(..., min_length=1)

    @field_validator("members")
    @classmethod
    def _leader_complete(cls, members):
        leader = members[0]
        if not leader.name.strip() or not leader.email:
            raise ValueError("Team leader name and email are required")
        return members


class StatusUpdate(BaseModel):
    status: Status


class SettingUpdate(BaseModel):
    value: str = Field(..., min_length=1)


class Credentials(BaseModel):
    username: str
    password: str


_nullable = {}


def partial(model, frozen=()):
    """Build an update schema where every field of ``model`` is optional.

    Fields named in ``frozen`` are still accepted but never dumped, so a
    patch cannot change them.
    """
    _nullable[model.__name__] = {
        name for name, info in model.model_fields.items() if type(None) in get_args(info.annotation)
    }
    fields = {
        name: (Optional[info.annotation], Field(None, exclude=name in frozen))
        for name, info in model.model_fields.items()
    }
    update = create_model(f"{model.__name__.replace('Create', '')}Update", __base__=model, **fields)
    _nullable[update.__name__] = _nullable[model.__name__]
    return update


EventUpdate = partial(EventCreate)
TeamMemberUpdate = partial(TeamMemberCreate)
GalleryImageUpdate = partial(GalleryImageCreate)
UserUpdate = partial(UserCreate)
PollUpdate = partial(PollCreate, frozen=("options", "created_by"))
AnnouncementUpdate = partial(AnnouncementCreate, frozen=("created_by",))
CourseUpdate = partial(CourseCreate, frozen=("created_by",))
TechnofestUpdate = partial(TechnofestCreate)


def changes(model, payload):
    """Validate ``payload`` and return only the fields the caller sent."""
    data = model.model_validate(payload or {}).model_dump(exclude_unset=True)
    nullable = _nullable.get(model.__name__, set())
    # an explicit null only clears columns that may be empty
    return {key: value for key, value in data.items() if value is not None or key in nullable}
