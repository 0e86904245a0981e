# app/__init__.py
import logging

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .core.config import Config
from .core.errors import LeafDocError
from .database.db import make_engine, make_session_factory, init_schema
from .ml.classification.invoker import SubprocessClassifier
from .services.generative_text import GenerativeTextClient
from .services.remedy_service import RemedyResolver
from .services.prediction_store import PredictionStore
from .services.prediction_service import PredictionPipeline
from .services.activity_service import ActivityReportBuilder
from .api.prediction_routes import predict_bp

logger = logging.getLogger(__name__)


def _register_error_handlers(app):
    @app.errorhandler(LeafDocError)
    def handle_leafdoc_error(e):
        if e.status_code >= 500:
            logger.error("%s: %s", type(e).__name__, e)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error"}), 500


def build_services(app, classifier=None, text_client=None, today=None) -> dict:
    """
    Wire the components from app.config.
    classifier / text_client / today can be replaced (tests).
    """
    cfg = app.config

    engine = make_engine(cfg["DATABASE_URL"] or Config.database_url())
    if cfg.get("AUTO_CREATE_TABLES"):
        init_schema(engine)
    store = PredictionStore(make_session_factory(engine), upload_dir=cfg["UPLOAD_DIR"])

    if classifier is None:
        classifier = SubprocessClassifier(
            python=cfg["CLASSIFIER_PYTHON"],
            script=cfg["CLASSIFIER_SCRIPT"],
            cwd=cfg["BASE_DIR"],
        )

    if text_client is None:
        if not cfg["GEMINI_API_KEY"]:
            logger.warning("GEMINI_API_KEY not set; remedies will use fallback text.")
        text_client = GenerativeTextClient(
            api_key=cfg["GEMINI_API_KEY"],
            model=cfg["GEMINI_MODEL"],
            api_base=cfg["GEMINI_API_BASE"],
            timeout_seconds=cfg["GEMINI_TIMEOUT_SECONDS"],
        )

    remedies = RemedyResolver(text_client, detail_mode=cfg["REMEDY_DETAIL_MODE"])

    return {
        "engine": engine,
        "store": store,
        "classifier": classifier,
        "text_client": text_client,
        "remedies": remedies,
        "pipeline": PredictionPipeline(classifier, remedies, store, upload_dir=cfg["UPLOAD_DIR"]),
        "activity": ActivityReportBuilder(store, today=today),
    }


def create_app(overrides=None, classifier=None, text_client=None, today=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Allow the frontend dev server; identity arrives in X-User-Id
    CORS(app, resources={r"/api/*": {"origins": "*"}}, allow_headers=["Content-Type", "Authorization", "X-User-Id"])

    app.extensions["leafdoc"] = build_services(
        app, classifier=classifier, text_client=text_client, today=today
    )

    _register_error_handlers(app)
    app.register_blueprint(predict_bp, url_prefix="/api/predict")

    return app
