from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from little_lemon.database import Base


class Preference(Base):
    __tablename__ = "preferences"

    key: Mapped[str] = mapped_column(String(50), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
