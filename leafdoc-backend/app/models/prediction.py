# app/models/prediction.py
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.dialects import mysql
from app.database.db import Base

# MySQL DATETIME drops fractional seconds unless fsp is set
_Timestamp = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")

# binary collation: labels group by exact string, case included
_Label = String(128).with_variant(mysql.VARCHAR(128, collation="utf8mb4_bin"), "mysql")


class Prediction(Base):
    __tablename__ = "predictions"

    id = Column(String(64), primary_key=True, index=True)
    owner_id = Column(String(64), nullable=False, index=True)

    # classifier label, e.g. "Tomato_Early_blight"
    disease_name = Column(_Label, nullable=False)
    image_path = Column(Text, nullable=False)

    # one-line summary from the remedy service (or its fallback)
    remedy = Column(Text, nullable=False)

    # naive UTC
    created_at = Column(_Timestamp, nullable=False, index=True)
