"""Organization model: the monitored nonprofit."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from compliance_monitor.models.base import Base


class Organization(Base):
    """A nonprofit whose filings and funding are monitored."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    ein: Mapped[str | None] = mapped_column(String(10), unique=True, nullable=True, index=True)
    mission: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<Organization {self.name}>"
