from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, func
from app.database import Base

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # Recipient
    type = Column(String, nullable=False)  # REPORT_FEEDBACK
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    link_url = Column(String, nullable=True)
    data = Column(Text, nullable=True)  # JSON payload
    created_at = Column(DateTime(timezone=True), server_default=func.now())
