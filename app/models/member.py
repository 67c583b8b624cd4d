from datetime import datetime

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship

from app.database import Base


class Member(Base):
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    home_location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="member")
    home_location = relationship("Location")
    subscriptions = relationship("MemberSubscription", back_populates="member")
    bookings = relationship("Booking", back_populates="member")

    def __repr__(self):
        return f"<Member(id={self.id}, first_name={self.first_name}, last_name={self.last_name})>"
