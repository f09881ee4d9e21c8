from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from recuerdos.core.database import Base


class Memory(Base):
    __tablename__ = "memories"
    __table_args__ = (
        CheckConstraint("length(title) > 0", name="ck_memories_title_not_empty"),
        CheckConstraint("length(photo_url) > 0", name="ck_memories_photo_url_not_empty"),
        CheckConstraint("length(photo_storage_key) > 0", name="ck_memories_photo_storage_key_not_empty"),
        Index("ix_memories_user_id_date", "user_id", "date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    date = Column(Date, nullable=False)
    photo_url = Column(String(500), nullable=False)
    photo_storage_key = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="memories")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "titulo": self.title,
            "descripcion": self.description,
            "fecha": self.date.isoformat(),
            "url_foto": self.photo_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
