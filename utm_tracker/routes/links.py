"""
UTM link management endpoints.

Provides CRUD operations over links with Pydantic validation. Bearer
authentication applies when AUTH_ENABLED is set.
"""

from __future__ import annotations

from pydantic import ValidationError
from quart import Blueprint, current_app, jsonify, request

from ..auth import auth_required, get_current_user_id
from ..errors import InvalidRequestError
from ..schemas import (
    CreateLinkRequest,
    LinkResponse,
    MessageResponse,
    PaginatedResponse,
    PaginationMeta,
    UpdateLinkRequest,
)
from ..utils.pagination import format_pagination_meta, get_pagination_params

links_bp = Blueprint("links", __name__)


def _link_service():
    return current_app.extensions["link_service"]


async def _parse_body(model):
    data = await request.get_json(silent=True)

    if not isinstance(data, dict):
        raise InvalidRequestError("Request body required")

    try:
        return model.model_validate(data)
    except ValidationError as e:
        error_msg = e.errors()[0].get("msg", "Validation error")
        raise InvalidRequestError("Invalid request body", error_msg) from e


@links_bp.route("", methods=["GET"])
@auth_required
async def list_links():
    """
    List UTM links, newest first.

    Query parameters:
        page: Page number (default: 1)
        limit: Items per page (default: 10, max: 100)

    Returns:
        data: Links on the page
        metadata.pagination: count, page, pageCount, limit, from, to
    """
    params = get_pagination_params(
        request.args,
        default_limit=current_app.config["PAGE_DEFAULT_LIMIT"],
        max_limit=current_app.config["PAGE_MAX_LIMIT"],
    )

    links, total = await _link_service().list_page(params.offset, params.limit)

    response = PaginatedResponse[LinkResponse](
        message="UTM links retrieved successfully",
        data=[LinkResponse.from_link(link) for link in links],
        metadata={
            "pagination": PaginationMeta.model_validate(
                format_pagination_meta(total, params.page, params.limit)
            ),
        },
    )

    return jsonify(response.model_dump(mode="json", by_alias=True)), 200


@links_bp.route("", methods=["POST"])
@auth_required
async def create_link():
    """
    Create a UTM link with a generated short code.

    Request body (JSON):
        destinationUrl: Absolute destination URL
        utmSource: UTM source
        utmMedium: UTM medium
        utmCampaign: Optional UTM campaign
        utmContent: Optional UTM content

    Returns:
        Created link
    """
    payload = await _parse_body(CreateLinkRequest)
    link = await _link_service().create(payload, created_by=get_current_user_id())

    return jsonify(LinkResponse.from_link(link).to_api_dict()), 201


@links_bp.route("/<int:link_id>", methods=["GET"])
@auth_required
async def get_link(link_id: int):
    """Get a single UTM link by ID."""
    link = await _link_service().get(link_id)
    return jsonify(LinkResponse.from_link(link).to_api_dict()), 200


@links_bp.route("/<int:link_id>", methods=["PUT"])
@auth_required
async def update_link(link_id: int):
    """
    Update a UTM link.

    Destination and UTM fields are replaced wholesale; isActive is
    optional.

    Returns:
        message: Success message
        data: Updated link
    """
    payload = await _parse_body(UpdateLinkRequest)
    link = await _link_service().update(link_id, payload)

    return jsonify({
        "status": "success",
        "message": "UTM link updated successfully",
        "data": LinkResponse.from_link(link).to_api_dict(),
    }), 200


@links_bp.route("/<int:link_id>", methods=["DELETE"])
@auth_required
async def delete_link(link_id: int):
    """Delete a UTM link and its tracking events."""
    await _link_service().delete(link_id)

    response = MessageResponse(message="UTM link deleted successfully")
    return jsonify(response.model_dump(mode="json")), 200
