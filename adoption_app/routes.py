import json
import logging
import queue
import time

from flask import Blueprint, Response, jsonify, request, stream_with_context

from . import catalog
from .config import LISTINGS_COLLECTION
from .exceptions import NotFoundError, ServiceUnavailableError, ValidationError
from .models.listing import ListingForm
from .services.realtime import subscribe_document, listing_from_row
from .utils.filters import parse_filter_params, serialize_filter_params, city_options, breed_options
from .utils.image_staging import PendingUpload
from .utils.pagination import ListingBrowser
from .utils.time_helpers import time_ago
from .utils.validators import validate_listing_form
from .web import get_services, request_data

main_bp = Blueprint('main', __name__)
logger = logging.getLogger(__name__)

STREAM_KEEPALIVE_SECONDS = 15
STREAM_BUFFER_SIZE = 16


def _listing_card(listing, now=None) -> dict:
    card = listing.to_dict()
    card["posted_ago"] = time_ago(listing.created_at, now)
    return card


def _is_confirmed(value) -> bool:
    return str(value).lower() in ("1", "true", "yes")


@main_bp.route('/api/animals', methods=['GET'])
def get_animals():
    return jsonify({
        "animals": catalog.ANIMAL_OPTIONS,
        "breeds": catalog.BREEDS_BY_ANIMAL,
    }), 200


@main_bp.route('/api/listings', methods=['GET'])
def list_listings():
    feed = get_services().feed
    if feed is None:
        raise ServiceUnavailableError("Listings feed")

    if feed.is_loading:
        return jsonify({"state": "loading"}), 202

    listing_filter = parse_filter_params(request.args)
    page = max(1, request.args.get('page', default=1, type=int) or 1)

    listings = feed.listings()
    browser = ListingBrowser(listings, listing_filter)
    browser.load_pages(page)
    window = browser.window

    now = time.time()
    return jsonify({
        "state": "ready" if listings else "empty",
        "data": [_listing_card(x, now) for x in window.visible_items],
        "page": page,
        "next_page": page + 1 if window.has_more else None,
        **window.to_dict(),
        "filters": serialize_filter_params(listing_filter),
        "filters_active": listing_filter.is_active,
        "city_options": city_options(listings),
        "breed_options": breed_options(listing_filter),
    }), 200


@main_bp.route('/api/listings/<listing_id>', methods=['GET'])
def get_listing(listing_id):
    services = get_services()
    listing = services.listings.get_listing(listing_id)
    if not listing.owner_name and services.feed is not None:
        listing = listing.with_owner_name(services.feed.resolver.name_for(listing))

    identity = services.auth.current_identity()
    card = _listing_card(listing)
    card["is_owner"] = listing.is_owned_by(identity.uid if identity else None)
    return jsonify({"state": "ready", "data": card}), 200


@main_bp.route('/api/listings/<listing_id>/stream', methods=['GET'])
def stream_listing(listing_id):
    """Relay live snapshots of one listing as server-sent events."""
    firestore_client = get_services().listings.firestore
    if not firestore_client:
        raise ServiceUnavailableError("Firestore")

    doc_ref = firestore_client.collection(LISTINGS_COLLECTION).document(listing_id)

    def events():
        updates = queue.Queue(maxsize=STREAM_BUFFER_SIZE)

        def offer(row):
            # Each snapshot is the whole document, so the oldest pending one can be dropped
            while True:
                try:
                    updates.put_nowait(row)
                    return
                except queue.Full:
                    try:
                        updates.get_nowait()
                    except queue.Empty:
                        pass

        subscription = subscribe_document(doc_ref, offer)
        try:
            while True:
                try:
                    row = updates.get(timeout=STREAM_KEEPALIVE_SECONDS)
                except queue.Empty:
                    yield ": keepalive\n\n"
                    continue
                if row is None:
                    payload = {"state": "not_found"}
                else:
                    payload = {"state": "ready", "data": _listing_card(listing_from_row(row))}
                yield f"data: {json.dumps(payload)}\n\n"
        finally:
            subscription.unsubscribe()

    return Response(stream_with_context(events()), mimetype="text/event-stream")


@main_bp.route('/api/listings/<listing_id>', methods=['DELETE'])
def delete_listing(listing_id):
    services = get_services()
    identity = services.auth.require_identity()
    report = services.listings.delete_listing(
        listing_id, identity.uid, confirmed=_is_confirmed(request.args.get('confirm'))
    )
    return jsonify({
        "status": "deleted",
        "cleanup_failures": [f.reference for f in report.failures],
    }), 200


@main_bp.route('/api/drafts', methods=['POST'])
def open_draft():
    services = get_services()
    identity = services.auth.require_identity()
    listing_id = request_data().get('listing_id')

    if listing_id:
        listing = services.listings.get_listing(listing_id)
        draft = services.drafts.open_edit(identity.uid, listing)
    else:
        draft = services.drafts.open_new(identity.uid, identity.email or "")

    return jsonify(draft.to_dict()), 201


def _owned_draft(draft_id):
    services = get_services()
    identity = services.auth.require_identity()
    return identity, services.drafts.get(draft_id, identity.uid)


@main_bp.route('/api/drafts/<draft_id>', methods=['GET'])
def get_draft(draft_id):
    _, draft = _owned_draft(draft_id)
    return jsonify(draft.to_dict()), 200


@main_bp.route('/api/drafts/<draft_id>', methods=['DELETE'])
def cancel_draft(draft_id):
    _owned_draft(draft_id)
    get_services().drafts.close(draft_id)
    return jsonify({"status": "cancelled"}), 200


@main_bp.route('/api/drafts/<draft_id>/images', methods=['POST'])
def add_draft_images(draft_id):
    _, draft = _owned_draft(draft_id)
    files = [PendingUpload.from_file_storage(f) for f in request.files.getlist('images') if f]
    draft.images.add(files)
    return jsonify(draft.to_dict()), 200


@main_bp.route('/api/drafts/<draft_id>/images/<int:index>', methods=['DELETE'])
def remove_draft_image(draft_id, index):
    _, draft = _owned_draft(draft_id)
    try:
        draft.images.remove(index)
    except IndexError as e:
        raise ValidationError("image", str(e))
    return jsonify(draft.to_dict()), 200


@main_bp.route('/api/drafts/<draft_id>/images/reorder', methods=['POST'])
def reorder_draft_images(draft_id):
    _, draft = _owned_draft(draft_id)
    data = request_data()
    try:
        from_index = int(data.get('from'))
        to_index = int(data.get('to'))
        draft.images.reorder(from_index, to_index)
    except (TypeError, ValueError):
        raise ValidationError("image", "Both 'from' and 'to' positions are required")
    except IndexError as e:
        raise ValidationError("image", str(e))
    return jsonify(draft.to_dict()), 200


@main_bp.route('/api/drafts/<draft_id>/images/<int:index>/cover', methods=['POST'])
def set_draft_cover(draft_id, index):
    _, draft = _owned_draft(draft_id)
    try:
        draft.images.promote_to_cover(index)
    except IndexError as e:
        raise ValidationError("image", str(e))
    return jsonify(draft.to_dict()), 200


@main_bp.route('/api/drafts/<draft_id>/validate', methods=['POST'])
def validate_draft(draft_id):
    _, draft = _owned_draft(draft_id)
    draft.form = ListingForm.from_mapping(request_data(), defaults=draft.form)
    return jsonify(validate_listing_form(draft.form).to_dict()), 200


@main_bp.route('/api/drafts/<draft_id>/submit', methods=['POST'])
def submit_draft(draft_id):
    services = get_services()
    identity, draft = _owned_draft(draft_id)
    draft.form = ListingForm.from_mapping(request_data(), defaults=draft.form)
    images = draft.images.entries

    cleanup_failures = []
    if draft.is_edit:
        report = services.listings.update_listing(draft.snapshot, identity.uid, draft.form, images)
        listing_id = draft.listing_id
        cleanup_failures = [f.reference for f in report.failures]
    else:
        listing_id = services.listings.create_listing(
            identity.uid, identity.display_name, draft.form, images
        )

    services.drafts.close(draft_id)
    logger.info(f"Submitted draft {draft_id} as listing {listing_id}")
    return jsonify({
        "status": "success",
        "listing_id": listing_id,
        "cleanup_failures": cleanup_failures,
    }), 200 if draft.is_edit else 201


@main_bp.route('/previews/<handle>', methods=['GET'])
def get_preview(handle):
    preview = get_services().drafts.previews.get(handle)
    if preview is None:
        raise NotFoundError("Preview", handle)
    data, content_type = preview
    return Response(data, mimetype=content_type)
