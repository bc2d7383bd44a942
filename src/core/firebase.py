import json
import os
from typing import Any, Dict

import firebase_admin
import structlog
from firebase_admin import credentials, firestore

from ..config import Settings
from ..exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


def _load_service_account(settings: Settings) -> Dict[str, Any]:
    if settings.firebase_service_account_key:
        try:
            return json.loads(settings.firebase_service_account_key)
        except json.JSONDecodeError as e:
            raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT_KEY is not valid JSON", details={"error": str(e)})

    path = settings.firebase_service_account_path
    if path and os.path.exists(path):
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    raise ConfigurationError(
        "Firebase service account not found",
        details={"path": path}
    )


def initialize_firebase(settings: Settings) -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    service_account = _load_service_account(settings)
    try:
        cred = credentials.Certificate(service_account)
        options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
        app = firebase_admin.initialize_app(cred, options)
    except ValueError as e:
        raise ConfigurationError("Firebase initialization failed", details={"error": str(e)})

    logger.info("Firebase initialized", project_id=app.project_id)
    return app


def get_firestore_client(settings: Settings):
    app = initialize_firebase(settings)
    return firestore.client(app)
