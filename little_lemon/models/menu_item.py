from sqlalchemy import Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from little_lemon.database import Base


class MenuItem(Base):
    __tablename__ = "menu"

    # Plain INTEGER PRIMARY KEY (no AUTOINCREMENT): ids restart at 1 after a full replace
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[float] = mapped_column(Float, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)  # remote URL, not a local path
