from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Float, Text
from sqlalchemy.orm import relationship
from .base import BaseModel


class Sprint(BaseModel):
    __tablename__ = "sprints"

    name = Column(String, nullable=False)
    comment = Column(Text, default="", nullable=False)

    # Snapshot taken at creation, never recomputed
    total_days_available = Column(Float, nullable=False)
    forecast_velocity = Column(Float, nullable=False)

    # Null while the sprint is active; both set together on completion
    actual_velocity = Column(Float, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Foreign keys
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)

    # Relationships
    team = relationship("Team", back_populates="sprints")
    member_availability = relationship(
        "MemberAvailability",
        back_populates="sprint",
        cascade="all, delete-orphan",
        order_by="MemberAvailability.id",
        lazy="selectin"
    )

    @property
    def is_active(self) -> bool:
        return self.actual_velocity is None


class MemberAvailability(BaseModel):
    __tablename__ = "member_availability"

    # Plain id, not a foreign key: members may leave the team later
    member_id = Column(Integer, nullable=False)
    days_off = Column(Float, default=0.0, nullable=False)

    # Foreign keys
    sprint_id = Column(Integer, ForeignKey("sprints.id"), nullable=False)

    # Relationships
    sprint = relationship("Sprint", back_populates="member_availability")
