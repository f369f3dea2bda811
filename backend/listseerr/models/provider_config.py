from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.sql import func
from listseerr.db.base_class import Base
from listseerr.models.media_list import ProviderType


class ProviderConfig(Base):
    """Per-user credentials for credentialed list providers."""
    __tablename__ = "provider_configs"
    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_provider_configs_user_provider"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    provider = Column(SQLEnum(ProviderType), nullable=False)
    client_id = Column(String, nullable=True)  # Trakt
    api_key = Column(String, nullable=True)  # MDBList
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
