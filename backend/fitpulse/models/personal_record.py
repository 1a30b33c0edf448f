from datetime import datetime
from sqlalchemy import DateTime, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from fitpulse.db.base import Base


class PersonalRecord(Base):
    """Best-known value per (user, category, record_type). Only ever replaced by a strictly better value."""

    __tablename__ = "personal_records"
    __table_args__ = (
        UniqueConstraint("user_id", "category", "record_type", name="uq_personal_records_user_kind"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False)  # running | cardio | strength | general
    record_type: Mapped[str] = mapped_column(String(96), nullable=False)  # e.g. fastest_5k, heaviest_squat
    value: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(16), nullable=False)
    previous_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    improvement_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    achieved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    workout_id: Mapped[int | None] = mapped_column(ForeignKey("workouts.id", ondelete="SET NULL"), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
