import sys

from app import create_app
from models import db
from storage import get_storage

app = create_app()

if not app.config.get("DATABASE_URL"):
    print("❌ DATABASE_URL is not set, nothing to initialize.")
    sys.exit(1)

with app.app_context():
    db.create_all()
    get_storage().initialize_data()
    print("✅ Database initialized with tables and seed data.")
