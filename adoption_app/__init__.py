import logging
from dataclasses import dataclass
from typing import Optional

from flask import Flask

from . import gcp_clients
from .auth import AuthProvider
from .web import register_error_handlers, EXTENSION_KEY
from .preferences import init_preferences
from .routes import main_bp
from .account_routes import account_bp
from .services.draft_service import DraftStore
from .services.listing_service import ListingService
from .services.realtime import ListingFeed
from .services.storage_service import StorageService
from .services.upload_pipeline import UploadPipeline
from .services.user_service import UserService

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Services shared by all requests of one application."""
    auth: AuthProvider
    listings: ListingService
    users: UserService
    drafts: DraftStore
    feed: Optional[ListingFeed] = None


def build_services() -> AppServices:
    storage_service = StorageService()
    pipeline = UploadPipeline(storage_service)
    services = AppServices(
        auth=AuthProvider(),
        listings=ListingService(pipeline=pipeline),
        users=UserService(storage_service=storage_service),
        drafts=DraftStore(),
    )

    if gcp_clients.firestore_client:
        services.feed = ListingFeed().start()
        logger.info("Subscribed to live listings feed")
    else:
        logger.info("Skipping live listings feed (Firestore client not initialized)")

    return services


def create_app(services: Optional[AppServices] = None, test_config: Optional[dict] = None):
    app = Flask(__name__)
    app.secret_key = gcp_clients.SECRET_KEY
    if test_config:
        app.config.update(test_config)

    # Initialize Global Services
    if services is None:
        gcp_clients.init_services()
        services = build_services()
    init_preferences(app.config.get("PREFERENCES_PATH", gcp_clients.PREFERENCES_PATH))

    # Profiles are created lazily on the first sign-in of a user
    def ensure_profile(identity):
        if identity is not None:
            services.users.ensure_user_doc(identity.uid, identity.email, identity.display_name)
    services.auth.on_identity_changed(ensure_profile)

    app.extensions[EXTENSION_KEY] = services

    # Register Blueprints
    app.register_blueprint(main_bp)
    app.register_blueprint(account_bp)
    register_error_handlers(app)

    return app
