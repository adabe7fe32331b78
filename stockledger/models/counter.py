from __future__ import annotations

from sqlalchemy import BigInteger, Column, Integer, Text

from ..db.session import Base


class Counter(Base):
    """Named monotonic counter backing the sequence generator."""

    __tablename__ = "counters"

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False, unique=True, index=True)
    seq = Column(BigInteger, nullable=False, default=0)


__all__ = ["Counter"]
