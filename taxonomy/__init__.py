from __future__ import annotations

import os
from typing import Any, Dict

import click
from flask import Flask, jsonify, g, request

from taxonomy.config import Config
from taxonomy.extensions import (
    db,
    migrate,
    limiter,
)
from taxonomy.logging_config import configure_logging
from taxonomy.models.category import Category  # ensure models imported for migrations


def create_app(config_overrides: Dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=False)

    # Load config
    app.config.from_object(Config())
    if config_overrides:
        app.config.update(config_overrides)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Rate limiter (in-memory for dev). Strict on mutations
    limiter.init_app(app)

    # Request context enrichment for logging
    @app.before_request
    def add_request_context() -> None:
        g.request_id = request.headers.get("X-Request-ID") or os.urandom(8).hex()

    @app.after_request
    def echo_request_id(resp):
        req_id = getattr(g, "request_id", None)
        if req_id:
            resp.headers["X-Request-ID"] = req_id
        return resp

    # Blueprints
    from taxonomy.blueprints.categories import bp as categories_bp

    app.register_blueprint(categories_bp)

    # Health route
    @app.get("/health")
    def health():
        try:
            db.session.execute(db.text("SELECT 1"))
            db_ok = "connected"
        except Exception:
            db_ok = "error"
        return jsonify({"status": "ok", "db": db_ok}), 200

    # Error handlers (JSON)
    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({"error": "bad_request", "message": str(e)}), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "not_found", "message": "resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "method_not_allowed", "message": "method not allowed"}), 405

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"error": "rate_limited", "message": "too many requests"}), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "server_error", "message": "internal server error"}), 500

    # CLI: audit the stored hierarchy
    @app.cli.command("verify-categories")
    def verify_categories() -> None:
        from taxonomy.services.categories import verify_hierarchy

        problems = verify_hierarchy()
        if not problems:
            click.echo(f"OK: {db.session.execute(db.select(db.func.count(Category.id))).scalar_one()} categories, no problems found")
            return
        for p in problems:
            click.echo(f"{p['problem']}: {p['slug']} ({p['category']}) {p['detail']}")
        click.echo(f"{len(problems)} problem(s) found")
        raise SystemExit(1)

    return app
