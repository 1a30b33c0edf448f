"""Generated training plan: plan -> ordered weeks -> ordered day workouts. Structure is fixed after generation."""

from datetime import date, datetime
from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from fitpulse.db.base import Base


class TrainingPlan(Base):
    __tablename__ = "training_plans"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)
    duration_weeks: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    current_week: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", index=True)
    progress_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_workouts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_workouts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    target_distance_km: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    user: Mapped["User"] = relationship("User", back_populates="training_plans")
    weeks: Mapped[list["PlanWeek"]] = relationship(
        "PlanWeek",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlanWeek.week_number",
    )


class PlanWeek(Base):
    __tablename__ = "plan_weeks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("training_plans.id", ondelete="CASCADE"), nullable=False, index=True)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    phase: Mapped[str] = mapped_column(String(16), nullable=False)  # base | build | peak | taper
    theme: Mapped[str] = mapped_column(String(64), nullable=False)
    total_distance_km: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_duration_min: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    plan: Mapped["TrainingPlan"] = relationship("TrainingPlan", back_populates="weeks")
    workouts: Mapped[list["PlanWorkout"]] = relationship(
        "PlanWorkout",
        back_populates="week",
        cascade="all, delete-orphan",
        order_by="PlanWorkout.position",
    )


class PlanWorkout(Base):
    __tablename__ = "plan_workouts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    week_id: Mapped[int] = mapped_column(ForeignKey("plan_weeks.id", ondelete="CASCADE"), nullable=False, index=True)
    day: Mapped[int] = mapped_column(Integer, nullable=False)  # 0=Monday .. 6=Sunday
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # run | lift | cardio | cross_training | rest
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_min: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    distance_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    intensity: Mapped[str] = mapped_column(String(16), nullable=False, default="moderate")
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    week: Mapped["PlanWeek"] = relationship("PlanWeek", back_populates="workouts")
