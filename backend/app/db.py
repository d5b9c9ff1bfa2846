from __future__ import annotations

import os
import json
import random
import string
import time
import datetime as dt
from typing import Any, Optional

from sqlalchemy import (
    create_engine,
    String,
    Text,
    DateTime,
    Float,
    Integer,
    Boolean,
    LargeBinary,
    select,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, Session


DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///storage/wardrobe.sqlite3")


class Base(DeclarativeBase):
    pass


class ClothingORM(Base):
    __tablename__ = "clothing"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    category: Mapped[str] = mapped_column(String(32), index=True)
    color: Mapped[str] = mapped_column(String(64))
    brand: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # JSON-encoded string lists
    seasons: Mapped[str] = mapped_column(Text, default="[]")
    tags: Mapped[str] = mapped_column(Text, default="[]")
    occasions: Mapped[str] = mapped_column(Text, default="[]")
    image_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_data: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)
    favorite: Mapped[bool] = mapped_column(Boolean, default=False)
    wear_count: Mapped[int] = mapped_column(Integer, default=0)
    last_worn_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow
    )

    def to_dict(self, include_image: bool = False) -> dict[str, Any]:
        d = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "color": self.color,
            "brand": self.brand,
            "price": self.price,
            "seasons": json.loads(self.seasons or "[]"),
            "tags": json.loads(self.tags or "[]"),
            "occasions": json.loads(self.occasions or "[]"),
            "image_path": self.image_path,
            "has_image": self.image_data is not None,
            "favorite": bool(self.favorite),
            "wear_count": int(self.wear_count or 0),
            "last_worn_at": self.last_worn_at.isoformat() if self.last_worn_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_image:
            d["image_data"] = self.image_data
        return d


engine = create_engine(DATABASE_URL, echo=False, future=True)


def init_db() -> None:
    # Ensure storage dir exists for SQLite
    if DATABASE_URL.startswith("sqlite:///"):
        db_dir = os.path.dirname(DATABASE_URL[len("sqlite:///"):])
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
    Base.metadata.create_all(engine)


def check_connection() -> bool:
    try:
        with Session(engine) as s:
            s.execute(select(1))
        return True
    except Exception:
        return False


def generate_clothing_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"clothing_{int(time.time() * 1000)}_{suffix}"


def add_clothing(
    name: str,
    category: str,
    color: str,
    brand: Optional[str] = None,
    price: Optional[float] = None,
    seasons: Optional[list[str]] = None,
    tags: Optional[list[str]] = None,
    occasions: Optional[list[str]] = None,
    image_data: Optional[bytes] = None,
    image_path: Optional[str] = None,
    favorite: bool = False,
) -> str:
    item_id = generate_clothing_id()
    with Session(engine) as s:
        s.add(
            ClothingORM(
                id=item_id,
                name=name,
                category=category,
                color=color,
                brand=brand,
                price=price,
                seasons=json.dumps(seasons or [], ensure_ascii=False),
                tags=json.dumps(tags or [], ensure_ascii=False),
                occasions=json.dumps(occasions or [], ensure_ascii=False),
                image_data=image_data,
                image_path=image_path,
                favorite=favorite,
            )
        )
        s.commit()
    return item_id


def get_clothing(item_id: str) -> Optional[ClothingORM]:
    with Session(engine) as s:
        item = s.get(ClothingORM, item_id)
        if item is None:
            return None
        # Detach for safe return
        s.expunge(item)
        return item


def list_clothing(category: Optional[str] = None) -> list[ClothingORM]:
    with Session(engine) as s:
        stmt = select(ClothingORM).order_by(ClothingORM.created_at.desc())
        if category:
            stmt = stmt.where(ClothingORM.category == category)
        rows = list(s.scalars(stmt))
        for r in rows:
            s.expunge(r)
        return rows


def list_clothing_by_season(season: str) -> list[ClothingORM]:
    # Seasons are JSON text, filtered in Python
    return [r for r in list_clothing() if season in json.loads(r.seasons or "[]")]


def update_clothing(
    item_id: str,
    *,
    name: Optional[str] = None,
    category: Optional[str] = None,
    color: Optional[str] = None,
    brand: Optional[str] = None,
    price: Optional[float] = None,
    seasons: Optional[list[str]] = None,
    tags: Optional[list[str]] = None,
    occasions: Optional[list[str]] = None,
    image_data: Optional[bytes] = None,
    favorite: Optional[bool] = None,
) -> bool:
    with Session(engine) as s:
        item = s.get(ClothingORM, item_id)
        if not item:
            return False
        if name is not None:
            item.name = name
        if category is not None:
            item.category = category
        if color is not None:
            item.color = color
        if brand is not None:
            item.brand = brand
        if price is not None:
            item.price = price
        if seasons is not None:
            item.seasons = json.dumps(seasons, ensure_ascii=False)
        if tags is not None:
            item.tags = json.dumps(tags, ensure_ascii=False)
        if occasions is not None:
            item.occasions = json.dumps(occasions, ensure_ascii=False)
        if image_data is not None:
            item.image_data = image_data
        if favorite is not None:
            item.favorite = favorite
        s.add(item)
        s.commit()
        return True


def record_wear(item_id: str) -> Optional[int]:
    with Session(engine) as s:
        item = s.get(ClothingORM, item_id)
        if not item:
            return None
        item.wear_count = int(item.wear_count or 0) + 1
        item.last_worn_at = dt.datetime.utcnow()
        s.add(item)
        s.commit()
        return item.wear_count


def delete_clothing(item_id: str) -> bool:
    with Session(engine) as s:
        item = s.get(ClothingORM, item_id)
        if not item:
            return False
        s.delete(item)
        s.commit()
        return True
