from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from little_lemon.database import Base


class CacheEntry(Base):
    __tablename__ = "image_cache"

    source_url: Mapped[str] = mapped_column(Text, primary_key=True)
    local_path: Mapped[str] = mapped_column(Text, nullable=False)
    last_modified_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
