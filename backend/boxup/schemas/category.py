from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ColorRGBA(BaseModel):
    """颜色（0~255 整数通道，alpha 缺省为 255 不透明）。"""

    r: int = Field(ge=0, le=255)
    g: int = Field(ge=0, le=255)
    b: int = Field(ge=0, le=255)
    a: int = Field(default=255, ge=0, le=255)

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.r, self.g, self.b, self.a)

    @classmethod
    def from_tuple(cls, rgba: tuple[int, int, int, int]) -> "ColorRGBA":
        r, g, b, a = rgba
        return cls(r=r, g=g, b=b, a=a)


class CategoryCreate(BaseModel):
    """新建分类请求：名称必填（去空白后非空），颜色/图标缺省走默认值。"""

    name: str
    color: ColorRGBA | None = None
    icon: str | None = None


class CategoryUpdate(BaseModel):
    """修改分类请求：不传的字段保持不变。"""

    name: str | None = None
    color: ColorRGBA | None = None
    icon: str | None = None


class CategorySummary(BaseModel):
    """记录里引用的分类摘要（列表/详情展示用）。"""

    id: int
    name: str
    icon: str
    color: ColorRGBA


class CategoryResponse(CategorySummary):
    """分类响应：附带当前挂在该分类下的记录数（实时聚合，不是缓存字段）。"""

    usage_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategoryDeleteResponse(BaseModel):
    id: int
    detached_entries: int = 0


class IconPresetResponse(BaseModel):
    system_name: str
    label: str
