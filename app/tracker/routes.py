from flask import Blueprint, jsonify

bp = Blueprint("routes", __name__)


@bp.get("/api/health")
def health():
    """Health check endpoint. No DB access."""
    return jsonify({"message": "Server is running", "ok": True})
