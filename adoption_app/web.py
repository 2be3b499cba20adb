"""
Request helpers and error handlers shared by the blueprints.
"""
import logging

from flask import current_app, jsonify, redirect, request, url_for

from .exceptions import (
    AdoptionBoardError, ValidationError, ContentPolicyError, AuthenticationError,
    PermissionDeniedError, NotFoundError, ConfirmationRequiredError, UploadError,
    StorageError, ServiceUnavailableError,
)

logger = logging.getLogger(__name__)

EXTENSION_KEY = "adoption_board"


def get_services():
    return current_app.extensions[EXTENSION_KEY]


def request_data():
    """JSON body if present, otherwise form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form


def register_error_handlers(app):

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        body = {"error": e.message, "field": e.field}
        if isinstance(e, ContentPolicyError):
            body["terms"] = e.terms
        return jsonify(body), 400

    @app.errorhandler(AuthenticationError)
    def handle_authentication_error(e):
        return jsonify({"error": str(e)}), 401

    @app.errorhandler(PermissionDeniedError)
    def handle_permission_denied(e):
        # Non-owners are sent back to the listing instead of seeing an error
        listing_id = (request.view_args or {}).get("listing_id")
        if listing_id:
            return redirect(url_for("main.get_listing", listing_id=listing_id))
        return redirect(url_for("main.list_listings"))

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return jsonify({"state": "not_found", "error": str(e)}), 404

    @app.errorhandler(ConfirmationRequiredError)
    def handle_confirmation_required(e):
        return jsonify({"error": str(e), "confirm": True}), 409

    @app.errorhandler(UploadError)
    def handle_upload_error(e):
        return jsonify({"error": "Upload failed."}), 502

    @app.errorhandler(ServiceUnavailableError)
    def handle_service_unavailable(e):
        return jsonify({"error": str(e)}), 503

    @app.errorhandler(StorageError)
    def handle_storage_error(e):
        return jsonify({"error": str(e)}), 502

    @app.errorhandler(AdoptionBoardError)
    def handle_adoption_board_error(e):
        logger.error(f"Unhandled application error: {e}")
        return jsonify({"error": str(e)}), 500
