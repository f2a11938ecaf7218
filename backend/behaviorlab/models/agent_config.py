from typing import Any

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from behaviorlab.models.base import Base, JSONType


class AgentConfig(Base):
    """A registered target agent: where to reach it and its configuration graph."""

    __tablename__ = "agent_configs"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    api_url: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    graph: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    # Relationships
    behavior_tests: Mapped[list["BehaviorTest"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        back_populates="agent",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
