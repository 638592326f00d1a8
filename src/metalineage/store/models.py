from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Declarative base for the lineage store."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class LineageNode(Base):
    __tablename__ = "lineage_nodes"

    # ids are assigned by the graph service (or preserved on import), never by SQLite
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    label: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False, default="")
    node_type: Mapped[str] = mapped_column(String, nullable=False, default="transform")
    properties: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    path_properties: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    dataset_versions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    current_version_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    outgoing_edges: Mapped[list["LineageEdge"]] = relationship(
        back_populates="source",
        foreign_keys="LineageEdge.source_id",
        cascade="all, delete-orphan",
    )
    incoming_edges: Mapped[list["LineageEdge"]] = relationship(
        back_populates="target",
        foreign_keys="LineageEdge.target_id",
        cascade="all, delete-orphan",
    )


class LineageEdge(Base):
    __tablename__ = "lineage_edges"
    __table_args__ = (UniqueConstraint("edge_key", name="uq_lineage_edges_edge_key"),)

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # edge ids may be str or int; edge_key keeps "1" and 1 distinct
    edge_key: Mapped[str] = mapped_column(String, nullable=False)
    edge_id: Mapped[Any] = mapped_column(JSON, nullable=False)
    source_id: Mapped[int] = mapped_column(
        ForeignKey("lineage_nodes.id", ondelete="CASCADE"), nullable=False
    )
    target_id: Mapped[int] = mapped_column(
        ForeignKey("lineage_nodes.id", ondelete="CASCADE"), nullable=False
    )

    source: Mapped["LineageNode"] = relationship(
        back_populates="outgoing_edges", foreign_keys=[source_id]
    )
    target: Mapped["LineageNode"] = relationship(
        back_populates="incoming_edges", foreign_keys=[target_id]
    )
