from datetime import datetime
from typing import Any

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from behaviorlab.models.base import Base, JSONType


class ExperimentRecord(Base):
    """Persisted experiment. The full experiment lives in ``payload``; the
    other columns are copies used for scoping, filtering and ordering."""

    __tablename__ = "experiments"

    agent_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    test_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="running")
    completed_at: Mapped[datetime | None] = mapped_column()
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
