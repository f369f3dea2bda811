from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from listseerr.db.base_class import Base


class JellyseerrConfig(Base):
    __tablename__ = "jellyseerr_configs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, unique=True, index=True)
    url = Column(String, nullable=False)
    external_url = Column(String, nullable=True)  # Link target for the UI, never called
    api_key = Column(String, nullable=False)
    jellyseerr_user_id = Column(Integer, nullable=False)  # Requests are attributed to this user
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
