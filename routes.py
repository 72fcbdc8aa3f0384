from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from auth import (
    admin_required,
    coordinator_required,
    current_identity,
    issue_token,
    revoke_current_token,
    super_admin_required,
)
from models import check_password
from schemas import (
    AboutContentCreate,
    AnnouncementCreate,
    AnnouncementReplyCreate,
    AnnouncementUpdate,
    CourseCreate,
    CourseUpdate,
    Credentials,
    EventCreate,
    EventUpdate,
    GalleryImageCreate,
    GalleryImageUpdate,
    PollCreate,
    PollResponseCreate,
    PollUpdate,
    RegistrationCreate,
    SettingUpdate,
    StatusUpdate,
    TeamMemberCreate,
    TeamMemberUpdate,
    TechfestSignup,
    TechnofestCreate,
    TechnofestUpdate,
    UserSignup,
    UserUpdate,
    changes,
)
from storage import get_storage

bp = Blueprint("api", __name__, url_prefix="/api")


def _payload():
    return request.get_json(silent=True) or {}


def _not_found(what):
    return jsonify({"message": f"{what} not found"}), 404


def _public(record):
    return {key: value for key, value in record.items() if key != "password"}


def _as_event_registration(registration):
    return {**registration, "event_type": "Event"}


def _as_techfest_registration(registration):
    return {
        **registration,
        "event_type": "TechFest",
        "event_id": registration["technofest_id"],
        "name": registration["team_name"],
        "email": registration["contact_email"],
    }


# ==================== Public: events, gallery, team, about ====================

@bp.route("/events", methods=["GET"])
def list_events():
    return jsonify(get_storage().get_events())


@bp.route("/events/<id>", methods=["GET"])
def get_event(id):
    event = get_storage().get_event(id)
    if not event:
        return _not_found("Event")
    return jsonify(event)


@bp.route("/events/<id>/register", methods=["POST"])
def register_for_event(id):
    storage = get_storage()
    data = RegistrationCreate.model_validate({**_payload(), "event_id": id})
    if not storage.get_event(id):
        return _not_found("Event")
    registration = storage.create_registration(data.model_dump())
    return jsonify(registration), 201


@bp.route("/gallery", methods=["GET"])
def list_gallery():
    return jsonify(get_storage().get_gallery_images())


@bp.route("/team", methods=["GET"])
def list_team():
    return jsonify(get_storage().get_team_members())


@bp.route("/about", methods=["GET"])
def list_about():
    return jsonify(get_storage().get_about_content())


# ==================== Public: community ====================

@bp.route("/polls", methods=["GET"])
def list_polls():
    return jsonify(get_storage().get_polls())


@bp.route("/polls/<id>", methods=["GET"])
def get_poll(id):
    poll = get_storage().get_poll_with_responses(id)
    if not poll:
        return _not_found("Poll")
    return jsonify(poll)


@bp.route("/polls/<id>/respond", methods=["POST"])
def respond_to_poll(id):
    storage = get_storage()
    data = PollResponseCreate.model_validate(_payload())

    poll = storage.get_poll(id)
    if not poll:
        return _not_found("Poll")
    user = storage.get_user_by_username(data.username)
    if not user:
        return jsonify({"message": "User not found"}), 400
    if data.selected_option >= len(poll["options"]):
        return jsonify({"message": "Selected option is out of range"}), 400
    if storage.get_user_poll_response(id, user["id"]):
        return jsonify({"message": "You have already responded to this poll"}), 400

    response = storage.create_poll_response(
        {
            "poll_id": id,
            "user_id": user["id"],
            "username": user["username"],
            "selected_option": data.selected_option,
        }
    )
    return jsonify(response), 201


@bp.route("/polls/<id>/responses", methods=["GET"])
def list_poll_responses(id):
    return jsonify(get_storage().get_poll_responses(id))


@bp.route("/announcements", methods=["GET"])
def list_announcements():
    return jsonify(get_storage().get_announcements())


@bp.route("/announcements/<id>", methods=["GET"])
def get_announcement(id):
    storage = get_storage()
    announcement = storage.get_announcement(id)
    if not announcement:
        return _not_found("Announcement")
    return jsonify({**announcement, "replies": storage.get_announcement_replies(id)})


@bp.route("/announcements/<id>/reply", methods=["POST"])
def reply_to_announcement(id):
    storage = get_storage()
    data = AnnouncementReplyCreate.model_validate(_payload())

    if not storage.get_announcement(id):
        return _not_found("Announcement")
    user = storage.get_user_by_username(data.username)
    if not user:
        return jsonify({"message": "User not found"}), 400

    reply = storage.create_announcement_reply(
        {
            "announcement_id": id,
            "user_id": user["id"],
            "username": user["username"],
            "content": data.content,
        }
    )
    return jsonify(reply), 201


@bp.route("/announcements/<id>/replies", methods=["GET"])
def list_announcement_replies(id):
    return jsonify(get_storage().get_announcement_replies(id))


@bp.route("/course-library", methods=["GET"])
def list_courses():
    return jsonify(get_storage().get_course_library())


@bp.route("/course-library/<id>", methods=["GET"])
def get_course(id):
    course = get_storage().get_course(id)
    if not course:
        return _not_found("Course")
    return jsonify(course)


# ==================== Public: technofest ====================

@bp.route("/technofest", methods=["GET"])
def list_technofest():
    storage = get_storage()
    category = request.args.get("category")
    active_only = request.args.get("active", "").lower() in ("1", "true", "yes")

    if category:
        events = storage.get_technofest_events_by_category(category)
        if active_only:
            events = [event for event in events if event["is_active"]]
    elif active_only:
        events = storage.get_active_technofest_events()
    else:
        events = storage.get_technofest_events()
    return jsonify(events)


@bp.route("/technofest/<id>", methods=["GET"])
def get_technofest(id):
    event = get_storage().get_technofest_event(id)
    if not event:
        return _not_found("Technofest event")
    return jsonify(event)


@bp.route("/technofest/slug/<slug>", methods=["GET"])
def get_technofest_by_slug(slug):
    event = get_storage().get_technofest_event_by_slug(slug)
    if not event:
        return _not_found("Technofest event")
    return jsonify(event)


@bp.route("/technofest/<id>/register", methods=["POST"])
def register_team(id):
    storage = get_storage()
    data = TechfestSignup.model_validate(_payload())

    event = storage.get_technofest_event(id)
    if not event:
        return _not_found("Technofest event")

    members = [member for member in data.members if member.name]
    if not event["team_min"] <= len(members) <= event["team_max"]:
        return jsonify(
            {"message": f"Team size must be between {event['team_min']} and {event['team_max']} members"}
        ), 400

    leader = members[0]
    registration, _ = storage.register_team(
        {
            "technofest_id": id,
            "team_name": data.team_name.strip(),
            "team_leader_name": leader.name,
            "team_leader_email": leader.email,
            "contact_email": data.contact_email,
        },
        [{"name": member.name, "email": member.email} for member in members[1:]],
    )
    current_app.logger.info("Team %s registered for %s", registration["id"], event["name"])

    return jsonify(
        {
            "success": True,
            "message": "Registration successful! You will receive a confirmation email shortly.",
            "registration": {
                "id": registration["id"],
                "team_name": registration["team_name"],
                "contact_email": registration["contact_email"],
                "technofest_id": registration["technofest_id"],
            },
        }
    ), 201


@bp.route("/test/db", methods=["GET"])
def test_db():
    storage = get_storage()
    return jsonify({"connected": storage.test_database_connection(), "backend": type(storage).__name__})


# ==================== Auth ====================

@bp.route("/user/register", methods=["POST"])
def user_register():
    storage = get_storage()
    data = UserSignup.model_validate(_payload())

    if storage.get_user_by_username(data.username):
        return jsonify({"message": "Username already exists"}), 400
    if storage.get_user_by_email(data.email):
        return jsonify({"message": "Email already exists"}), 400

    user = storage.create_user({**data.model_dump(), "role": "user", "is_approved": False})
    return jsonify(
        {
            "message": "Registration request submitted successfully. Please wait for admin approval.",
            "user": _public(user),
        }
    ), 201


@bp.route("/user/login", methods=["POST"])
def user_login():
    data = Credentials.model_validate(_payload())
    user = get_storage().authenticate_user(data.username, data.password)
    if not user:
        return jsonify({"message": "Invalid credentials or user not approved"}), 401
    return jsonify({"token": issue_token(user, "user"), "user": _public(user)})


@bp.route("/admin/login", methods=["POST"])
def admin_login():
    data = Credentials.model_validate(_payload())
    admin = get_storage().get_admin_by_username(data.username)
    if not admin or not check_password(admin["password"], data.password):
        current_app.logger.info("Admin login failed for %s", data.username)
        return jsonify({"message": "Invalid credentials"}), 401
    return jsonify({"token": issue_token(admin, "admin"), "admin": _public(admin)})


@bp.route("/admin/logout", methods=["POST"])
@jwt_required()
def admin_logout():
    revoke_current_token()
    return jsonify({"message": "Logged out successfully"})


# ==================== Admin: events ====================

@bp.route("/admin/events", methods=["POST"])
@admin_required
def create_event():
    storage = get_storage()
    data = EventCreate.model_validate(_payload()).model_dump()
    if data["featured"] == 1:
        storage.unfeature_all_events()
    return jsonify(storage.create_event(data)), 201


@bp.route("/admin/events/<id>", methods=["PATCH"])
@admin_required
def update_event(id):
    storage = get_storage()
    data = changes(EventUpdate, _payload())
    if data.get("featured") == 1:
        storage.unfeature_all_events()
    event = storage.update_event(id, data)
    if not event:
        return _not_found("Event")
    return jsonify(event)


@bp.route("/admin/events/<id>", methods=["DELETE"])
@admin_required
def delete_event(id):
    if not get_storage().delete_event(id):
        return _not_found("Event")
    return jsonify({"message": "Event deleted"})


@bp.route("/events/cleanup", methods=["DELETE"])
@admin_required
def cleanup_events():
    deleted = get_storage().cleanup_old_events()
    return jsonify({"message": f"Cleaned up {deleted} old events", "deleted": deleted})


# ==================== Admin: gallery, team, about ====================

@bp.route("/admin/gallery", methods=["POST"])
@admin_required
def create_gallery_image():
    data = GalleryImageCreate.model_validate(_payload())
    return jsonify(get_storage().create_gallery_image(data.model_dump())), 201


@bp.route("/admin/gallery/<id>", methods=["PATCH"])
@admin_required
def update_gallery_image(id):
    image = get_storage().update_gallery_image(id, changes(GalleryImageUpdate, _payload()))
    if not image:
        return _not_found("Gallery image")
    return jsonify(image)


@bp.route("/admin/gallery/<id>", methods=["DELETE"])
@admin_required
def delete_gallery_image(id):
    if not get_storage().delete_gallery_image(id):
        return _not_found("Gallery image")
    return jsonify({"message": "Gallery image deleted"})


@bp.route("/team", methods=["POST"])
@admin_required
def create_team_member():
    data = TeamMemberCreate.model_validate(_payload())
    return jsonify(get_storage().create_team_member(data.model_dump())), 201


@bp.route("/team/<id>", methods=["PATCH"])
@admin_required
def update_team_member(id):
    member = get_storage().update_team_member(id, changes(TeamMemberUpdate, _payload()))
    if not member:
        return _not_found("Team member")
    return jsonify(member)


@bp.route("/team/<id>", methods=["DELETE"])
@admin_required
def delete_team_member(id):
    if not get_storage().delete_team_member(id):
        return _not_found("Team member")
    return jsonify({"message": "Team member deleted"})


@bp.route("/admin/about/<section>", methods=["PATCH"])
@admin_required
def update_about(section):
    data = AboutContentCreate.model_validate(_payload())
    return jsonify(get_storage().update_about_content(section, data.model_dump()))


# ==================== Admin: technofest ====================

@bp.route("/admin/technofest", methods=["POST"])
@admin_required
def create_technofest():
    data = TechnofestCreate.model_validate(_payload())
    return jsonify(get_storage().create_technofest_event(data.model_dump())), 201


@bp.route("/admin/technofest/<id>", methods=["PATCH"])
@admin_required
def update_technofest(id):
    storage = get_storage()
    data = changes(TechnofestUpdate, _payload())
    event = storage.get_technofest_event(id)
    if not event:
        return _not_found("Technofest event")
    if data.get("team_min", event["team_min"]) > data.get("team_max", event["team_max"]):
        return jsonify({"message": "team_min must not exceed team_max"}), 400
    return jsonify(storage.update_technofest_event(id, data))


@bp.route("/admin/technofest/<id>", methods=["DELETE"])
@admin_required
def delete_technofest(id):
    if not get_storage().delete_technofest_event(id):
        return _not_found("Technofest event")
    return jsonify({"message": "Technofest event deleted"})


# ==================== Admin: registrations ====================

@bp.route("/admin/registrations", methods=["GET"])
@admin_required
def list_registrations():
    storage = get_storage()
    registrations = [_as_event_registration(r) for r in storage.get_registrations()]
    registrations += [
        _as_techfest_registration(r) for r in storage.get_techfest_registrations_with_team_counts()
    ]
    return jsonify(registrations)


@bp.route("/admin/registrations/<id>/status", methods=["PATCH"])
@admin_required
def update_registration_status(id):
    storage = get_storage()
    status = StatusUpdate.model_validate(_payload()).status
    registration = storage.update_registration_status(id, status)
    if not registration:
        registration = storage.update_techfest_registration_status(id, status)
    if not registration:
        return _not_found("Registration")
    return jsonify(registration)


@bp.route("/admin/registrations/<id>", methods=["DELETE"])
@admin_required
def delete_registration(id):
    storage = get_storage()
    if not (storage.delete_registration(id) or storage.delete_techfest_registration(id)):
        return _not_found("Registration")
    return jsonify({"message": "Registration deleted successfully"})


@bp.route("/admin/events/<event_id>/registrations", methods=["GET"])
@admin_required
def list_event_registrations(event_id):
    storage = get_storage()
    if request.args.get("event_type") == "TechFest":
        registrations = [
            _as_techfest_registration(r)
            for r in storage.get_techfest_registrations_with_team_counts()
            if r["technofest_id"] == event_id
        ]
    else:
        registrations = [
            _as_event_registration(r) for r in storage.get_registrations_by_event(event_id)
        ]
    return jsonify(registrations)


@bp.route("/admin/registrations/<id>/team-members", methods=["GET"])
@admin_required
def list_registration_members(id):
    return jsonify(get_storage().get_registration_members(id))


@bp.route("/admin/team-members", methods=["GET"])
@admin_required
def list_all_registration_members():
    return jsonify(get_storage().get_all_registration_members())


# ==================== Admin: site settings ====================

@bp.route("/admin/settings", methods=["GET"])
@admin_required
def list_settings():
    return jsonify(get_storage().get_all_site_settings())


@bp.route("/admin/settings/<key>", methods=["GET"])
@admin_required
def get_setting(key):
    value = get_storage().get_site_setting(key)
    if value is None:
        return _not_found("Setting")
    return jsonify({"key": key, "value": value})


@bp.route("/admin/settings/<key>", methods=["PUT"])
@admin_required
def put_setting(key):
    value = SettingUpdate.model_validate(_payload()).value
    get_storage().set_site_setting(key, value)
    return jsonify({"key": key, "value": value})


# ==================== Coordinator: polls, announcements, courses ====================

@bp.route("/admin/polls", methods=["POST"])
@coordinator_required
def create_poll():
    data = PollCreate.model_validate({**_payload(), "created_by": current_identity()["id"]})
    return jsonify(get_storage().create_poll(data.model_dump())), 201


@bp.route("/admin/polls/<id>", methods=["PATCH"])
@coordinator_required
def update_poll(id):
    poll = get_storage().update_poll(id, changes(PollUpdate, _payload()))
    if not poll:
        return _not_found("Poll")
    return jsonify(poll)


@bp.route("/admin/polls/<id>", methods=["DELETE"])
@coordinator_required
def delete_poll(id):
    if not get_storage().delete_poll(id):
        return _not_found("Poll")
    return jsonify({"message": "Poll deleted"})


@bp.route("/admin/announcements", methods=["POST"])
@coordinator_required
def create_announcement():
    data = AnnouncementCreate.model_validate({**_payload(), "created_by": current_identity()["id"]})
    return jsonify(get_storage().create_announcement(data.model_dump())), 201


@bp.route("/admin/announcements/<id>", methods=["PATCH"])
@coordinator_required
def update_announcement(id):
    announcement = get_storage().update_announcement(id, changes(AnnouncementUpdate, _payload()))
    if not announcement:
        return _not_found("Announcement")
    return jsonify(announcement)


@bp.route("/admin/announcements/<id>", methods=["DELETE"])
@coordinator_required
def delete_announcement(id):
    if not get_storage().delete_announcement(id):
        return _not_found("Announcement")
    return jsonify({"message": "Announcement deleted"})


@bp.route("/admin/course-library", methods=["POST"])
@coordinator_required
def create_course():
    data = CourseCreate.model_validate({**_payload(), "created_by": current_identity()["id"]})
    return jsonify(get_storage().create_course(data.model_dump())), 201


@bp.route("/admin/course-library/<id>", methods=["PATCH"])
@coordinator_required
def update_course(id):
    course = get_storage().update_course(id, changes(CourseUpdate, _payload()))
    if not course:
        return _not_found("Course")
    return jsonify(course)


@bp.route("/admin/course-library/<id>", methods=["DELETE"])
@coordinator_required
def delete_course(id):
    if not get_storage().delete_course(id):
        return _not_found("Course")
    return jsonify({"message": "Course deleted"})


# ==================== Super admin: users ====================

@bp.route("/admin/users", methods=["GET"])
@super_admin_required
def list_users():
    return jsonify([_public(user) for user in get_storage().get_users()])


@bp.route("/admin/users/<id>/approve", methods=["PATCH"])
@super_admin_required
def approve_user(id):
    user = get_storage().approve_user(id)
    if not user:
        return _not_found("User")
    return jsonify(_public(user))


@bp.route("/admin/users/bulk", methods=["POST"])
@super_admin_required
def bulk_create_users():
    payload = _payload()
    users = payload.get("users") if isinstance(payload, dict) else None
    if not isinstance(users, list):
        return jsonify({"message": "Users must be an array"}), 400
    rows = [UserSignup.model_validate(user).model_dump() for user in users]
    created = get_storage().bulk_create_users(rows)
    return jsonify({"count": len(created), "users": [_public(user) for user in created]}), 201


@bp.route("/admin/users/<id>", methods=["PATCH"])
@super_admin_required
def update_user(id):
    storage = get_storage()
    data = changes(UserUpdate, _payload())
    if data.get("password") is None:
        data.pop("password", None)

    for field, lookup in (("username", storage.get_user_by_username), ("email", storage.get_user_by_email)):
        taken = lookup(data[field]) if field in data else None
        if taken and taken["id"] != id:
            return jsonify({"message": f"{field.capitalize()} already exists"}), 400

    user = storage.update_user(id, data)
    if not user:
        return _not_found("User")
    return jsonify(_public(user))


@bp.route("/admin/users/<id>", methods=["DELETE"])
@super_admin_required
def delete_user(id):
    if not get_storage().delete_user(id):
        return _not_found("User")
    return jsonify({"message": "User deleted"})
