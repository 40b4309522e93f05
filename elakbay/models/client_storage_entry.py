from sqlalchemy import Column, String, DateTime, Text
from elakbay.lib.database import Base
from datetime import datetime


class ClientStorageEntry(Base):
    """
    Durable key/value slot for one client (browser).
    Holds the namespaced session id, landing path and anonymous first-seen keys.
    """
    __tablename__ = 'client_storage'

    client_id = Column(String(255), primary_key=True)
    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
