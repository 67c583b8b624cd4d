from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship

from app.database import Base


class Location(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    region = Column(String, nullable=True, index=True)  # Регион для региональных абонементов
    is_active = Column(Boolean, default=True)

    # Relationships
    class_instances = relationship("ClassInstance", back_populates="location")
    capacity_limit = relationship("LocationCapacityLimit", back_populates="location", uselist=False)

    def __repr__(self):
        return f"<Location(id={self.id}, name={self.name}, region={self.region})>"
