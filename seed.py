"""Baseline rows so a cold store has something to show."""
import logging
from datetime import datetime

logger = logging.getLogger(__name__)

ADMIN = {"username": "admin", "password": "admin123", "email": "admin@innovare.club"}

ABOUT_HERO = {
    "title": "Welcome to Innovare Technical Club",
    "content": "Fostering innovation and technical excellence through collaborative learning and cutting-edge projects.",
    "image_url": None,
}

USERS = [
    {"username": "demo_user", "email": "demo@innovare.club", "password": "password123", "role": "user", "is_approved": True},
    {"username": "coordinator", "email": "coordinator@innovare.club", "password": "password123", "role": "coordinator", "is_approved": True},
    {"username": "superadmin", "email": "superadmin@innovare.club", "password": "admin123", "role": "super_admin", "is_approved": True},
]

EVENTS = [
    {
        "title": "Tech Workshop 2024",
        "description": "Join us for an intensive workshop on modern web development technologies.",
        "date": datetime(2024, 9, 15),
        "location": "Main Auditorium",
        "tags": ["workshop", "web-dev"],
        "image_url": "https://images.unsplash.com/photo-1517077304055-6e89abbf09b0?w=800",
        "featured": 1,
    },
    {
        "title": "AI/ML Bootcamp",
        "description": "Explore the fundamentals of Artificial Intelligence and Machine Learning.",
        "date": datetime(2024, 10, 20),
        "location": "Computer Lab",
        "tags": ["ai", "ml", "bootcamp"],
        "image_url": "https://images.unsplash.com/photo-1485827404703-89b55fcc595e?w=800",
        "featured": 0,
    },
]

# "event" is the index into EVENTS the picture belongs to
GALLERY = [
    {
        "title": "Tech Workshop 2023",
        "image_url": "https://images.unsplash.com/photo-1540575467063-178a50c2df87?w=800",
        "description": "Students collaborating on innovative projects",
        "is_main_image": True,
        "event": 0,
    },
    {
        "title": "AI Hackathon",
        "image_url": "https://images.unsplash.com/photo-1531482615713-2afd69097998?w=800",
        "description": "24-hour hackathon focused on AI solutions",
        "is_main_image": True,
        "event": 1,
    },
]

POLL = {
    "title": "What's your favorite programming language?",
    "description": "Vote for your preferred programming language",
    "options": ["JavaScript", "Python", "Java", "C++"],
    "is_active": True,
}

ANNOUNCEMENT = {
    "title": "Welcome to Innovare!",
    "content": "We are excited to have you join Innovare Technical Club. Stay tuned for upcoming events and opportunities.",
    "is_important": False,
}

TECHNOFEST = {
    "slug": "web-dev-challenge",
    "name": "Web Development Challenge",
    "number": 1,
    "category": "Development",
    "short_description": "Build amazing web applications",
    "description": "A comprehensive web development challenge where participants will build full-stack applications using modern technologies.",
    "rules": ["Team size: 2-4 members", "48-hour deadline", "Use any framework", "Deploy your project"],
    "youtube_url": "https://youtube.com/watch?v=example",
    "team_min": 2,
    "team_max": 4,
    "spline_right_url": None,
    "is_active": True,
}

SETTINGS = {"background_spline_url": "https://prod.spline.design/DC0L-NagpocfiwmY/scene.splinecode"}


def seed(storage, is_empty):
    """Fill every empty family of ``storage``.

    ``is_empty(name)`` tells whether the named family currently has no rows;
    families that already hold data are left alone, so calling this twice
    is harmless.
    """
    if is_empty("admins"):
        storage.create_admin(dict(ADMIN))
    if is_empty("about_content"):
        storage.update_about_content("hero", dict(ABOUT_HERO))
    if is_empty("users"):
        for user in USERS:
            storage.create_user(dict(user))

    if is_empty("events"):
        event_ids = [storage.create_event(dict(event))["id"] for event in EVENTS]
        if is_empty("gallery_images"):
            for order, image in enumerate(GALLERY):
                image = dict(image)
                image["event_id"] = event_ids[image.pop("event")]
                image["display_order"] = order
                storage.create_gallery_image(image)

    author = storage.get_user_by_username(USERS[0]["username"])
    if author is None:
        users = storage.get_users()
        author = users[0] if users else None
    if author is not None:
        if is_empty("polls"):
            storage.create_poll({**POLL, "created_by": author["id"]})
        if is_empty("announcements"):
            storage.create_announcement({**ANNOUNCEMENT, "created_by": author["id"]})

    if is_empty("technofest"):
        storage.create_technofest_event(dict(TECHNOFEST))
    if is_empty("site_settings"):
        for key, value in SETTINGS.items():
            storage.set_site_setting(key, value)

    logger.info("Seed data in place")
