import copy
import logging
from datetime import timedelta

import seed
from models import check_password, hash_password, new_id, utcnow
from storage import EVENT_RETENTION_DAYS, LIST_ORDER, Storage, with_team_count

logger = logging.getLogger(__name__)

# families whose rows carry an updated_at stamp
TOUCHED = {
    "events",
    "about_content",
    "users",
    "polls",
    "announcements",
    "course_library",
    "technofest",
    "site_settings",
}

# families without a created_at stamp
UNSTAMPED = {"about_content", "registration_members"}

TABLES = TOUCHED | {
    "team_members",
    "gallery_images",
    "admins",
    "registrations",
    "poll_responses",
    "announcement_replies",
    "techfest_registrations",
    "registration_members",
}


class MemStorage(Storage):
    """Process-local storage: one dict of records per entity family.

    Nothing survives a restart. The constructor seeds the baseline rows so a
    fresh process serves non-empty pages.
    """

    def __init__(self):
        self._tables = {name: {} for name in TABLES}
        seed.seed(self, lambda name: not self._tables[name])

    def initialize_data(self):
        # already seeded by the constructor; only fills families emptied since
        seed.seed(self, lambda name: not self._tables[name])
        logger.info("In-memory storage initialized with default data")

    # -------------------- helpers --------------------

    def _rows(self, table, **match):
        fields, newest_first = LIST_ORDER[table]
        rows = [
            copy.deepcopy(row)
            for row in self._tables[table].values()
            if all(row.get(k) == v for k, v in match.items())
        ]
        return sorted(
            rows,
            key=lambda row: tuple((row.get(f) is None, row.get(f)) for f in fields),
            reverse=newest_first,
        )

    def _get(self, table, key):
        row = self._tables[table].get(key)
        return copy.deepcopy(row) if row is not None else None

    def _insert(self, table, data, **defaults):
        now = utcnow()
        row = {**defaults, **copy.deepcopy(data)}
        row["id"] = new_id()
        if table not in UNSTAMPED:
            row.setdefault("created_at", now)
        if table in TOUCHED:
            row["updated_at"] = now
        self._tables[table][row["id"]] = row
        return copy.deepcopy(row)

    def _patch(self, table, key, data):
        existing = self._tables[table].get(key)
        if existing is None:
            return None
        updated = {**existing, **copy.deepcopy(data)}
        if table in TOUCHED:
            updated["updated_at"] = utcnow()
        self._tables[table][key] = updated
        return copy.deepcopy(updated)

    def _remove(self, table, key):
        return self._tables[table].pop(key, None) is not None

    def _remove_where(self, table, **match):
        doomed = [
            key
            for key, row in self._tables[table].items()
            if all(row.get(k) == v for k, v in match.items())
        ]
        for key in doomed:
            del self._tables[table][key]
        return doomed

    # -------------------- events --------------------

    def get_events(self):
        return self._rows("events")

    def get_event(self, id):
        return self._get("events", id)

    def create_event(self, data):
        return self._insert(
            "events",
            data,
            tags=[],
            image_url=None,
            featured=0,
            is_active=True,
            current_participants=0,
            registration_type="dialog",
            registration_url=None,
        )

    def update_event(self, id, data):
        return self._patch("events", id, data)

    def delete_event(self, id):
        return self._remove("events", id)

    def cleanup_old_events(self):
        cutoff = utcnow() - timedelta(days=EVENT_RETENTION_DAYS)
        events = self._tables["events"]
        doomed = [
            key for key, event in events.items() if event["date"] < cutoff and not event["is_active"]
        ]
        for key in doomed:
            del events[key]
        return len(doomed)

    def unfeature_all_events(self):
        for key, event in self._tables["events"].items():
            if event.get("featured"):
                self._patch("events", key, {"featured": 0})

    # -------------------- team members --------------------

    def get_team_members(self):
        return self._rows("team_members")

    def get_team_member(self, id):
        return self._get("team_members", id)

    def create_team_member(self, data):
        return self._insert("team_members", data, image_url=None, social_links={})

    def update_team_member(self, id, data):
        return self._patch("team_members", id, data)

    def delete_team_member(self, id):
        return self._remove("team_members", id)

    # -------------------- gallery --------------------

    def get_gallery_images(self):
        return self._rows("gallery_images")

    def get_gallery_image(self, id):
        return self._get("gallery_images", id)

    def create_gallery_image(self, data):
        return self._insert(
            "gallery_images", data, description=None, is_main_image=False, display_order=0
        )

    def update_gallery_image(self, id, data):
        return self._patch("gallery_images", id, data)

    def delete_gallery_image(self, id):
        return self._remove("gallery_images", id)

    # -------------------- admins --------------------

    def get_admin(self, id):
        return self._get("admins", id)

    def get_admin_by_username(self, username):
        matches = self._rows("admins", username=username)
        return matches[0] if matches else None

    def create_admin(self, data):
        return self._insert("admins", {**data, "password": hash_password(data["password"])})

    # -------------------- registrations --------------------

    def get_registrations(self):
        return self._rows("registrations")

    def get_registrations_by_event(self, event_id):
        return self._rows("registrations", event_id=event_id)

    def create_registration(self, data):
        data = {**data, "status": data.get("status") or "pending"}
        return self._insert("registrations", data, phone=None)

    def update_registration_status(self, id, status):
        return self._patch("registrations", id, {"status": status})

    def delete_registration(self, id):
        return self._remove("registrations", id)

    # -------------------- about content --------------------

    def get_about_content(self):
        return self._rows("about_content")

    def get_about_content_by_section(self, section):
        matches = self._rows("about_content", section=section)
        return matches[0] if matches else None

    def update_about_content(self, section, data):
        existing = self.get_about_content_by_section(section)
        if existing:
            return self._patch("about_content", existing["id"], data)
        return self._insert("about_content", {**data, "section": section}, image_url=None)

    # -------------------- users --------------------

    def get_users(self):
        return self._rows("users")

    def get_user(self, id):
        return self._get("users", id)

    def get_user_by_email(self, email):
        matches = self._rows("users", email=email)
        return matches[0] if matches else None

    def get_user_by_username(self, username):
        matches = self._rows("users", username=username)
        return matches[0] if matches else None

    def authenticate_user(self, username, password):
        logger.info("Attempting to authenticate user: %s", username)
        user = self.get_user_by_username(username)
        if user and user["is_approved"] and check_password(user["password"], password):
            logger.info("Authentication successful for user: %s", username)
            return user
        logger.info("Authentication failed for user: %s", username)
        return None

    def create_user(self, data):
        data = {**data, "password": hash_password(data.get("password"))}
        return self._insert("users", data, role="user", is_approved=False)

    def update_user(self, id, data):
        if "password" in data:
            data = {**data, "password": hash_password(data["password"])}
        return self._patch("users", id, data)

    def delete_user(self, id):
        return self._remove("users", id)

    def approve_user(self, id):
        return self._patch("users", id, {"is_approved": True})

    def bulk_create_users(self, users):
        return [
            self.create_user(
                {
                    "username": user["username"],
                    "email": user["email"],
                    "password": user["password"],
                    "role": "user",
                    "is_approved": False,
                }
            )
            for user in users
        ]

    # -------------------- polls --------------------

    def get_polls(self):
        return self._rows("polls")

    def get_poll(self, id):
        return self._get("polls", id)

    def create_poll(self, data):
        return self._insert("polls", data, description=None, is_active=True)

    def update_poll(self, id, data):
        return self._patch("polls", id, data)

    def delete_poll(self, id):
        if not self._remove("polls", id):
            return False
        self._remove_where("poll_responses", poll_id=id)
        return True

    def get_poll_with_responses(self, id):
        poll = self.get_poll(id)
        if poll is None:
            return None
        responses = self.get_poll_responses(id)
        return {"poll": poll, "responses": responses, "total_votes": len(responses)}

    def create_poll_response(self, data):
        return self._insert("poll_responses", data)

    def get_user_poll_response(self, poll_id, user_id):
        matches = self._rows("poll_responses", poll_id=poll_id, user_id=user_id)
        return matches[0] if matches else None

    def get_poll_responses(self, poll_id):
        return self._rows("poll_responses", poll_id=poll_id)

    # -------------------- announcements --------------------

    def get_announcements(self):
        return self._rows("announcements")

    def get_announcement(self, id):
        return self._get("announcements", id)

    def create_announcement(self, data):
        return self._insert("announcements", data, is_important=False)

    def update_announcement(self, id, data):
        return self._patch("announcements", id, data)

    def delete_announcement(self, id):
        if not self._remove("announcements", id):
            return False
        self._remove_where("announcement_replies", announcement_id=id)
        return True

    def create_announcement_reply(self, data):
        return self._insert("announcement_replies", data)

    def get_announcement_replies(self, announcement_id):
        return self._rows("announcement_replies", announcement_id=announcement_id)

    # -------------------- course library --------------------

    def get_course_library(self):
        return self._rows("course_library")

    def get_course(self, id):
        return self._get("course_library", id)

    def create_course(self, data):
        return self._insert("course_library", data, description=None, image_url=None, is_active=True)

    def update_course(self, id, data):
        return self._patch("course_library", id, data)

    def delete_course(self, id):
        return self._remove("course_library", id)

    # -------------------- technofest --------------------

    def get_technofest_events(self):
        return self._rows("technofest")

    def get_technofest_event(self, id):
        return self._get("technofest", id)

    def get_technofest_event_by_slug(self, slug):
        matches = self._rows("technofest", slug=slug)
        return matches[0] if matches else None

    def create_technofest_event(self, data):
        return self._insert(
            "technofest",
            data,
            slug=None,
            number=None,
            rules=[],
            youtube_url=None,
            spline_right_url=None,
            is_active=True,
        )

    def update_technofest_event(self, id, data):
        return self._patch("technofest", id, data)

    def delete_technofest_event(self, id):
        if not self._remove("technofest", id):
            return False
        # no foreign keys over plain dicts, so cascade by hand
        for registration_id in self._remove_where("techfest_registrations", technofest_id=id):
            self._remove_where("registration_members", registration_id=registration_id)
        return True

    def get_technofest_events_by_category(self, category):
        return self._rows("technofest", category=category)

    def get_active_technofest_events(self):
        return self._rows("technofest", is_active=True)

    # -------------------- techfest registrations --------------------

    def get_techfest_registrations(self):
        return self._rows("techfest_registrations")

    def get_techfest_registrations_with_team_counts(self):
        counts = {}
        for member in self._tables["registration_members"].values():
            counts[member["registration_id"]] = counts.get(member["registration_id"], 0) + 1
        return [
            with_team_count(registration, counts.get(registration["id"], 0))
            for registration in self.get_techfest_registrations()
        ]

    def get_techfest_registration(self, id):
        return self._get("techfest_registrations", id)

    def get_techfest_registrations_by_event(self, technofest_id):
        return self._rows("techfest_registrations", technofest_id=technofest_id)

    def create_techfest_registration(self, data):
        data = {**data, "status": data.get("status") or "pending"}
        return self._insert("techfest_registrations", data)

    def delete_techfest_registration(self, id):
        if not self._remove("techfest_registrations", id):
            return False
        self._remove_where("registration_members", registration_id=id)
        return True

    def update_techfest_registration_status(self, id, status):
        return self._patch("techfest_registrations", id, {"status": status})

    def register_team(self, registration, members):
        created = self.create_techfest_registration(registration)
        rows = self.bulk_create_registration_members(
            [{**member, "registration_id": created["id"]} for member in members]
        )
        return created, rows

    # -------------------- registration members --------------------

    def get_registration_members(self, registration_id):
        return self._rows("registration_members", registration_id=registration_id)

    def get_all_registration_members(self):
        return self._rows("registration_members")

    def create_registration_member(self, data):
        return self._insert("registration_members", data, email=None)

    def delete_registration_member(self, id):
        return self._remove("registration_members", id)

    def bulk_create_registration_members(self, members):
        return [self.create_registration_member(member) for member in members]

    # -------------------- site settings --------------------

    def get_site_setting(self, key):
        setting = self._tables["site_settings"].get(key)
        return setting["value"] if setting else None

    def set_site_setting(self, key, value):
        self._tables["site_settings"][key] = {"key": key, "value": value, "updated_at": utcnow()}

    def get_all_site_settings(self):
        return self._rows("site_settings")

    def test_database_connection(self):
        logger.info("In-memory storage has no database connection to test")
        return False
