from typing import Optional

from sqlalchemy import BigInteger, Integer, String, Text, Index
from sqlalchemy.orm import Mapped, mapped_column
from advanced_alchemy.extensions.litestar import base


class Visit(base.BigIntBase):
    """One enriched nginx access log line.

    Column set is the storage contract read by the analytics layer.
    """

    __tablename__ = "visits"

    # Normalized timestamp, epoch_ts is in milliseconds
    iso_date: Mapped[str] = mapped_column(String(24), nullable=False)
    epoch_ts: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Aggregation buckets
    day: Mapped[str] = mapped_column(String(10), nullable=False)
    hour: Mapped[str] = mapped_column(String(24), nullable=False)

    ip: Mapped[str] = mapped_column(String(45), nullable=False)

    url: Mapped[Optional[str]] = mapped_column(Text)
    protocol: Mapped[Optional[str]] = mapped_column(String(16))
    pathname: Mapped[Optional[str]] = mapped_column(Text)
    host: Mapped[Optional[str]] = mapped_column(String(255))

    device_type: Mapped[str] = mapped_column(String(10), nullable=False)
    device_family: Mapped[Optional[str]] = mapped_column(String(100))
    browser: Mapped[Optional[str]] = mapped_column(String(100))
    browser_major_version: Mapped[Optional[str]] = mapped_column(String(20))
    browser_minor_version: Mapped[Optional[str]] = mapped_column(String(20))
    os: Mapped[Optional[str]] = mapped_column(String(100))
    os_major_version: Mapped[Optional[str]] = mapped_column(String(20))
    os_minor_version: Mapped[Optional[str]] = mapped_column(String(20))

    country_code: Mapped[Optional[str]] = mapped_column(String(2))
    referer_host: Mapped[Optional[str]] = mapped_column(String(255))

    __table_args__ = (
        Index("ix_visits_epoch_ts", "epoch_ts"),
        Index("ix_visits_day", "day"),
    )

    def __repr__(self) -> str:
        return f"<Visit(id={self.id}, ip={self.ip}, iso_date={self.iso_date}, device_type={self.device_type})>"


class IngestCheckpoint(base.BigIntAuditBase):
    """Persisted high-water-mark of one log source.

    rows_at_mark counts the stored visits whose epoch_ts equals the mark, so a
    later run can skip exactly those lines and keep new ones from the same millisecond.
    """

    __tablename__ = "ingest_checkpoints"

    source: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    high_water_mark: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    rows_at_mark: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<IngestCheckpoint(source={self.source}, high_water_mark={self.high_water_mark}, rows_at_mark={self.rows_at_mark})>"
