import logging
from datetime import date, datetime

from flask import Flask, jsonify
from flask.json.provider import DefaultJSONProvider
from flask_cors import CORS
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from auth import jwt
from config import Config
from models import bcrypt
from routes import bp
from storage import init_storage


class JSONProvider(DefaultJSONProvider):
    """Serialise timestamps as ISO 8601 instead of HTTP dates."""

    @staticmethod
    def default(o):
        if isinstance(o, (date, datetime)):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def create_app(config=Config):
    app = Flask(__name__)
    app.json = JSONProvider(app)

    # 🔐 Config
    app.config.from_object(config)
    logging.basicConfig(level=app.config["LOG_LEVEL"])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # 🔧 Init
    CORS(app, supports_credentials=True, origins=app.config["CORS_ORIGINS"])
    bcrypt.init_app(app)
    jwt.init_app(app)
    init_storage(app)
    app.register_blueprint(bp)

    @app.route("/")
    def home():
        return jsonify({"message": "Innovare club API is running!"})

    @app.errorhandler(ValidationError)
    def invalid_payload(e):
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        return jsonify({"message": "Invalid data", "errors": errors}), 400

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"message": e.description}), e.code

    @app.errorhandler(Exception)
    def unhandled(e):
        app.logger.exception("❌ Unhandled error: %s", e)
        return jsonify({"message": "Something went wrong"}), 500

    return app


# ▶️ Run app
if __name__ == "__main__":
    create_app().run(debug=True)
