import logging
import os

from dotenv import load_dotenv
from flasgger import Swagger
from flask import Flask
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE

load_dotenv()
from slotbook.api.auth.auth import auth_bp  # noqa: E402
from slotbook.api.booking.appointments import appointments_bp, availability_bp  # noqa: E402
from slotbook.api.businesses.details import businesses_bp  # noqa: E402
from slotbook.api.businesses.services import services_bp  # noqa: E402
from slotbook.api.communication.notifications import notifications_bp  # noqa: E402
from slotbook.api.customer.favorites import favorites_bp  # noqa: E402
from slotbook.api.employees.employees import employees_bp  # noqa: E402
from slotbook.api.employees.invitations import invitations_bp  # noqa: E402
from slotbook.api.reviews.reviews import business_reviews_bp, reviews_bp  # noqa: E402
from slotbook.api.users.details import users_bp  # noqa: E402
from slotbook.config import Config  # noqa: E402
from slotbook.errors import BookingError  # noqa: E402
from slotbook.extensions import db  # noqa: E402
from slotbook.scheduler import init_scheduler  # noqa: E402
from slotbook.utils.responses import api_response, error_response  # noqa: E402


def register_error_handlers(app):
    @app.errorhandler(BookingError)
    def handle_booking_error(error):
        return error_response(error)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        code = error.name.upper().replace(" ", "_")
        return api_response(None, error.description, error.code, error=code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        app.logger.exception(f"Unhandled error: {error}")
        return api_response(None, "Internal server error", 500, error="INTERNAL_ERROR")


def create_app(test_config=None):
    app = Flask(__name__)
    try:
        app.config.from_object(Config)
        if test_config:
            app.config.update(test_config)

        log_level = app.config.get("LOG_LEVEL", "INFO")
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
        app.logger.setLevel(log_level)
        app.logger.info(f"Config loaded: {len(app.config)} items")

        CORS(app)

        db.init_app(app)
        app.logger.info("Database initialized")

        # Determine host based on environment
        host = os.environ.get("API_HOST", "127.0.0.1:5000")
        swagger_template = SWAGGER_TEMPLATE.copy()
        swagger_template["host"] = host
        Swagger(app, config=SWAGGER_CONFIG, template=swagger_template)

        blueprints = [
            auth_bp,
            users_bp,
            businesses_bp,
            services_bp,
            employees_bp,
            invitations_bp,
            appointments_bp,
            availability_bp,
            reviews_bp,
            business_reviews_bp,
            favorites_bp,
            notifications_bp,
        ]

        for bp in blueprints:
            app.register_blueprint(bp)
            app.logger.debug(f"  {bp.name} registered")

        register_error_handlers(app)

        @app.route("/")
        def home():
            """
            Root endpoint - API status
            ---
            tags:
              - Utility
            responses:
              200:
                description: API is running
            """
            return api_response({"status": "ok", "docsUrl": "/api/docs"}, "Backend is running!")

        app.logger.info(f"Total routes registered: {len(list(app.url_map.iter_rules()))}")

        if app.config.get("SCHEDULER_ENABLED"):
            init_scheduler(app)

    except Exception as e:
        app.logger.exception(f"Error during app creation: {e}")
        raise

    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.environ.get("PORT", 5000))
    app.run(
        host="0.0.0.0", port=port, debug=os.environ.get("FLASK_ENV") != "production"
    )
