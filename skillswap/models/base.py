"""Declarative base and the id/timestamp mixin shared by every SkillSwap table.

``Base.type_annotation_map`` makes every ``Mapped[datetime]`` a timezone-aware
column and every ``Mapped[uuid.UUID]`` a native PostgreSQL UUID, so schedule
and audit timestamps can never be stored naive.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    type_annotation_map = {
        datetime: DateTime(timezone=True),
        uuid.UUID: UUID(as_uuid=True),
    }


class TimestampMixin:
    """``id`` (UUID, generated client- or server-side), ``created_at``, ``updated_at``.

    ``onupdate`` also fires for Core ``update()`` statements, so the
    conditional status write and counter increments keep ``updated_at``
    current.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
