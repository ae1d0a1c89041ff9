from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from taxonomy.exceptions import CategoryError, CategoryNotFound, CategoryValidationError
from taxonomy.extensions import limiter
from taxonomy.schemas.categories import (
    CategoryCreate,
    CategoryListQuery,
    CategoryUpdate,
    first_error_message,
)
from taxonomy.services.categories import (
    create_category,
    delete_category,
    get_ancestors,
    get_category,
    list_categories,
    list_categories_page,
    update_category,
)
from taxonomy.utils.slug import slugify

bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@bp.errorhandler(CategoryError)
def handle_category_error(e: CategoryError):
    if e.status_code >= 500:
        current_app.logger.error(f"Category operation failed: {e.kind}: {e.message}")
    return jsonify(e.to_dict()), e.status_code


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise CategoryValidationError("request body must be a JSON object")
    return data


@bp.get("")
@limiter.limit("120 per minute")
def categories_index():
    """Ordered tree listing, or a filtered page when query parameters are given."""
    if not request.args:
        return jsonify({"items": list_categories()})
    try:
        query = CategoryListQuery.model_validate(request.args.to_dict())
    except ValidationError as e:
        raise CategoryValidationError(first_error_message(e)) from e
    return jsonify(list_categories_page(query))


@bp.get("/<string:category_hex_id>")
@limiter.limit("120 per minute")
def category_detail(category_hex_id: str):
    item = get_category(category_hex_id)
    if item is None:
        raise CategoryNotFound()
    return jsonify(item)


@bp.get("/<string:category_hex_id>/ancestors")
@limiter.limit("120 per minute")
def category_ancestors(category_hex_id: str):
    return jsonify({"items": get_ancestors(category_hex_id)})


@bp.post("")
@limiter.limit("10 per minute; 150 per hour")
def category_create():
    data = _json_body()
    # Auto-slug if not provided
    if not data.get("slug") and data.get("name"):
        data["slug"] = slugify(data["name"])
    try:
        payload = CategoryCreate.model_validate(data)
    except ValidationError as e:
        raise CategoryValidationError(first_error_message(e)) from e
    created = create_category(
        name=payload.name,
        slug=payload.slug,
        description=payload.description,
        parent_id=payload.parent_id,
    )
    return jsonify(created), 201


@bp.patch("/<string:category_hex_id>")
@limiter.limit("10 per minute; 150 per hour")
def category_update(category_hex_id: str):
    data = _json_body()
    try:
        payload = CategoryUpdate.model_validate(data)
    except ValidationError as e:
        raise CategoryValidationError(first_error_message(e)) from e
    updated = update_category(category_hex_id, **payload.changes())
    return jsonify(updated), 200


@bp.delete("/<string:category_hex_id>")
@limiter.limit("10 per minute; 150 per hour")
def category_delete(category_hex_id: str):
    return jsonify(delete_category(category_hex_id)), 200
