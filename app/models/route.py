"""
Route model
"""

from sqlalchemy import Column, String, Integer
from sqlalchemy.orm import relationship

from app.models.base import BaseModel


class Route(BaseModel):
    __tablename__ = "routes"

    departure_city = Column(String(100), nullable=False, index=True)
    arrival_city = Column(String(100), nullable=False, index=True)
    distance_km = Column(Integer)

    # Relationships
    trips = relationship("Trip", back_populates="route")

    @property
    def name(self) -> str:
        return f"{self.departure_city} - {self.arrival_city}"

    def __repr__(self):
        return f"<Route(id={self.id}, {self.departure_city} -> {self.arrival_city})>"
