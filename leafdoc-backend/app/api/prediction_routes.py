# app/api/prediction_routes.py
import logging

from flask import Blueprint, current_app, jsonify, request

from app.core.errors import AuthError, ValidationError
from app.utils.upload_io import remove_upload, save_upload

logger = logging.getLogger(__name__)

predict_bp = Blueprint("predict", __name__)


def _get_owner_id() -> str:
    # identity is established upstream by the auth layer
    owner_id = (request.headers.get("X-User-Id") or "").strip()
    if not owner_id:
        raise AuthError()
    return owner_id


def _services() -> dict:
    return current_app.extensions["leafdoc"]


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _int_arg(name: str, default=None):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f'"{name}" must be an integer.')
    if value < 0:
        raise ValidationError(f'"{name}" must not be negative.')
    return value


@predict_bp.route("/", methods=["POST"])
def predict_disease():
    """
    multipart/form-data with an "image" file.
    Returns the stored prediction.
    """
    owner_id = _get_owner_id()
    svc = _services()

    image_path = save_upload(request.files.get("image"), current_app.config["UPLOAD_DIR"])
    try:
        record = svc["pipeline"].predict(owner_id, image_path)
    except Exception:
        # nothing references the upload once predict fails
        remove_upload(image_path)
        raise
    return jsonify(record), 200


@predict_bp.route("/history", methods=["GET"])
def get_history():
    owner_id = _get_owner_id()
    limit = _int_arg("limit")
    offset = _int_arg("offset", 0)
    return jsonify(_services()["store"].list_by_owner(owner_id, limit=limit, offset=offset))


@predict_bp.route("/stats", methods=["GET"])
def get_stats():
    owner_id = _get_owner_id()
    return jsonify(_services()["store"].count_by_disease(owner_id))


@predict_bp.route("/activity", methods=["GET"])
def get_weekly_activity():
    owner_id = _get_owner_id()
    return jsonify(_services()["activity"].build_weekly_report(owner_id))


@predict_bp.route("/", methods=["DELETE"])
@predict_bp.route("/delete", methods=["POST"])
def delete_predictions():
    owner_id = _get_owner_id()

    body = _json_body()
    ids = body.get("ids")
    if not isinstance(ids, list) or not all(isinstance(i, str) and i for i in ids):
        raise ValidationError('Invalid request: "ids" must be an array.')

    deleted = _services()["store"].delete_by_ids(owner_id, ids)
    return jsonify({"message": "Selected predictions deleted successfully.", "deleted": deleted})


@predict_bp.route("/remedy", methods=["POST"])
def get_remedy_details():
    _get_owner_id()

    body = _json_body()
    disease_name = body.get("diseaseName")
    if not isinstance(disease_name, str) or not disease_name.strip():
        raise ValidationError("Disease name is required.")

    return jsonify(_services()["remedies"].detailed_remedy(disease_name.strip()))
