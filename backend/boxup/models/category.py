from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


# 图标预设（systemName, 展示名）；icon 字段存 systemName 纯文本
DEFAULT_ICON = "folder"
ICON_PRESETS: tuple[tuple[str, str], ...] = (
    ("folder", "Folder"),
    ("figure.walk", "Exercise"),
    ("cart", "Food"),
    ("heart", "Love"),
    ("figure.walk.suitcase.rolling", "Travel"),
    ("book", "Book"),
    ("gift", "Gift"),
    ("bag", "Bag"),
    ("cup.and.saucer", "Tea"),
    ("pawprint", "Pawprint"),
)

# 未指定颜色时的默认色（r, g, b, a）
DEFAULT_COLOR = (59, 130, 246, 255)
# “未分类”统计桶专用色，真实分类不允许使用
UNCLASSIFIED_COLOR = (142, 142, 147, 255)


class Category(Base):
    """分类表 - 用户自定义标签（名称 + 颜色 + 图标）"""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    # 名称唯一性按 name_key（去空白 + casefold）判断，大小写不同也视为重名
    # casefold 最多把长度放大 3 倍（如 "ß" -> "ss"），按名称上限的 3 倍以上留长度
    name_key = Column(String(400), unique=True, nullable=False, index=True)
    icon = Column(String(64), nullable=False, default=DEFAULT_ICON)
    r = Column(Integer, nullable=False, default=DEFAULT_COLOR[0])
    g = Column(Integer, nullable=False, default=DEFAULT_COLOR[1])
    b = Column(Integer, nullable=False, default=DEFAULT_COLOR[2])
    a = Column(Integer, nullable=False, default=DEFAULT_COLOR[3])
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # 删除分类时不级联删除记录：由数据库 ON DELETE SET NULL + store 显式置空
    entries = relationship("Entry", back_populates="category", passive_deletes=True)

    @property
    def color(self) -> tuple[int, int, int, int]:
        return (int(self.r), int(self.g), int(self.b), int(self.a))
