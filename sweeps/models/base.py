from datetime import datetime

from sqlalchemy.orm import DeclarativeBase

from sweeps.db.metadata import metadata_obj
from .types import UTCDateTime


class Base(DeclarativeBase):
    """Declarative base for every draw table; instants default to UTC columns."""

    metadata = metadata_obj
    type_annotation_map = {datetime: UTCDateTime()}
