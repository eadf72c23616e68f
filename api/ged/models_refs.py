# api/ged/models_refs.py
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer
from .database import Base

class Service(Base):
    """Services municipaux connus (aide l'extraction hors-ligne à reconnaître l'émetteur)."""
    __tablename__ = "service"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(160), unique=True, index=True, nullable=False)
