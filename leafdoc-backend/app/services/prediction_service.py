# app/services/prediction_service.py
import logging

from app.core.errors import NoFileError
from app.utils.upload_io import to_storage_path

logger = logging.getLogger(__name__)


class PredictionPipeline:
    """
    One prediction request:
      classify image -> one-line remedy -> persist -> return the record.

    A classifier failure propagates and nothing is stored.
    The remedy step cannot fail, it falls back to a fixed sentence.
    """

    def __init__(self, classifier, remedies, store, upload_dir: str):
        self.classifier = classifier
        self.remedies = remedies
        self.store = store
        self.upload_dir = upload_dir

    def predict(self, owner_id: str, image_path: str | None) -> dict:
        if not image_path:
            raise NoFileError()

        disease_name = self.classifier.classify(image_path)
        logger.info("Classified %s as %s", image_path, disease_name)

        remedy = self.remedies.simple_remedy(disease_name)

        return self.store.create(
            owner_id=owner_id,
            disease_name=disease_name,
            image_path=to_storage_path(image_path, self.upload_dir),
            remedy=remedy,
        )
