from sqlalchemy import Column, String, Boolean, Float, ForeignKey, Integer
from sqlalchemy.orm import relationship
from .base import BaseModel


class Team(BaseModel):
    __tablename__ = "teams"

    name = Column(String, nullable=False)
    sprint_size_in_days = Column(Integer, nullable=False)  # working days, 1-30
    is_default = Column(Boolean, default=False, nullable=False)

    # Relationships
    members = relationship(
        "TeamMember",
        back_populates="team",
        cascade="all, delete-orphan",
        order_by="TeamMember.position",
        lazy="selectin"
    )
    sprints = relationship("Sprint", back_populates="team")


class TeamMember(BaseModel):
    __tablename__ = "team_members"

    name = Column(String, nullable=False)
    velocity_weight = Column(Float, default=1.0, nullable=False)  # 0-2
    position = Column(Integer, default=0, nullable=False)

    # Foreign keys
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)

    # Relationships
    team = relationship("Team", back_populates="members")
