# app/services/prediction_store.py
import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import StoreError
from app.models.prediction import Prediction
from app.utils.upload_io import from_storage_path, remove_upload

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC, the form created_at is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso_utc(dt):
    """
    Always an ISO string.
    Naive datetimes from the DB are taken as UTC.
    """
    if dt is None:
        return None
    if getattr(dt, "tzinfo", None) is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def _as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _as_date(v) -> date:
    # SQLite returns DATE() as "YYYY-MM-DD", MySQL as a date
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    return date.fromisoformat(str(v)[:10])


def serialize_prediction(row: Prediction) -> dict:
    return {
        "id": row.id,
        "owner": row.owner_id,
        "diseaseName": row.disease_name,
        "imagePath": row.image_path,
        "remedy": row.remedy,
        "createdAt": to_iso_utc(row.created_at),
    }


class PredictionStore:
    """
    Prediction rows, always scoped to the owner passed in by the caller.
    Every DB failure is logged and re-raised as StoreError.
    """

    def __init__(self, session_factory, upload_dir: str | None = None):
        self.session_factory = session_factory
        # when set, delete_by_ids also removes the uploaded images
        self.upload_dir = upload_dir

    def _fail(self, db, operation: str, exc: Exception):
        db.rollback()
        logger.exception("DB error while %s", operation)
        raise StoreError(operation) from exc

    def create(
        self,
        owner_id: str,
        disease_name: str,
        image_path: str,
        remedy: str,
        created_at: datetime | None = None,
        prediction_id: str | None = None,
    ) -> dict:
        owner_id = (str(owner_id).strip() if owner_id is not None else "")
        if not owner_id:
            raise ValueError("owner_id is required")
        if not disease_name:
            raise ValueError("disease_name is required")

        row = Prediction(
            id=prediction_id or str(uuid.uuid4()),
            owner_id=owner_id,
            disease_name=str(disease_name),
            image_path=str(image_path),
            remedy=remedy,
            created_at=_as_naive_utc(created_at) if created_at is not None else utcnow(),
        )

        db = self.session_factory()
        try:
            db.add(row)
            db.commit()
            db.refresh(row)
            return serialize_prediction(row)
        except SQLAlchemyError as e:
            self._fail(db, "saving prediction", e)
        finally:
            db.close()

    def list_by_owner(self, owner_id: str, limit: int | None = None, offset: int = 0) -> list[dict]:
        db = self.session_factory()
        try:
            q = (
                db.query(Prediction)
                .filter(Prediction.owner_id == owner_id)
                .order_by(Prediction.created_at.desc())
            )
            if offset:
                q = q.offset(int(offset))
            if limit is not None:
                q = q.limit(int(limit))
            return [serialize_prediction(r) for r in q.all()]
        except SQLAlchemyError as e:
            self._fail(db, "fetching prediction history", e)
        finally:
            db.close()

    def delete_by_ids(self, owner_id: str, ids) -> int:
        """
        Delete the given ids that belong to owner_id.
        Ids owned by someone else are ignored; returns rows actually deleted.
        Image files of the deleted rows are removed after the commit.
        """
        ids = [str(i) for i in ids]
        if not ids:
            return 0

        db = self.session_factory()
        try:
            rows = (
                db.query(Prediction.id, Prediction.image_path)
                .filter(Prediction.id.in_(ids))
                .filter(Prediction.owner_id == owner_id)
                .all()
            )
            if not rows:
                return 0

            deleted = (
                db.query(Prediction)
                .filter(Prediction.id.in_([r.id for r in rows]))
                .filter(Prediction.owner_id == owner_id)
                .delete(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as e:
            self._fail(db, "deleting predictions", e)
        finally:
            db.close()

        if self.upload_dir:
            for r in rows:
                remove_upload(from_storage_path(r.image_path, self.upload_dir))

        return int(deleted)

    def count_by_disease(self, owner_id: str) -> list[dict]:
        db = self.session_factory()
        try:
            count = func.count(Prediction.id).label("count")
            rows = (
                db.query(Prediction.disease_name, count)
                .filter(Prediction.owner_id == owner_id)
                .group_by(Prediction.disease_name)
                .order_by(count.desc())
                .all()
            )
            return [{"disease": name, "count": int(n)} for name, n in rows]
        except SQLAlchemyError as e:
            self._fail(db, "fetching statistics", e)
        finally:
            db.close()

    def daily_counts(self, owner_id: str, start: date, end: date) -> list[dict]:
        """
        Healthy/diseased counts per UTC calendar day for start..end (both inclusive).
        A row is healthy when its disease name contains "healthy", any case.
        """
        lower = datetime.combine(start, time.min)
        upper = datetime.combine(end + timedelta(days=1), time.min)

        db = self.session_factory()
        try:
            day = func.date(Prediction.created_at).label("day")
            is_healthy = func.lower(Prediction.disease_name).like("%healthy%")
            rows = (
                db.query(
                    day,
                    func.sum(case((is_healthy, 1), else_=0)).label("healthy"),
                    func.sum(case((is_healthy, 0), else_=1)).label("diseased"),
                )
                .filter(Prediction.owner_id == owner_id)
                .filter(Prediction.created_at >= lower)
                .filter(Prediction.created_at < upper)
                .group_by(day)
                .order_by(day)
                .all()
            )
            return [
                {"date": _as_date(d), "healthy": int(h or 0), "diseased": int(s or 0)}
                for d, h, s in rows
            ]
        except SQLAlchemyError as e:
            self._fail(db, "fetching activity", e)
        finally:
            db.close()
