from sqlalchemy import Column, Integer, String, Text, DateTime
from listseerr.db.base_class import Base


class ProviderCache(Base):
    """Raw provider payloads kept between runs (StevenLu list, anime id mapping)."""
    __tablename__ = "provider_cache"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String, unique=True, index=True, nullable=False)
    data = Column(Text, nullable=False)  # JSON
    cached_at = Column(DateTime, nullable=False)
