"""
基础数据模型
提供所有数据模型的通用功能
"""
import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field
from sqlalchemy.orm import declarative_base


# SQLAlchemy基础类
SQLAlchemyBase = declarative_base()


class BaseModel(PydanticBaseModel):
    """基础Pydantic模型"""

    model_config = ConfigDict(
        # 允许从ORM对象创建
        from_attributes=True,
        # 使用枚举值
        use_enum_values=True,
        # 验证赋值
        validate_assignment=True,
        # 任意类型允许
        arbitrary_types_allowed=True,
    )


class Entity(BaseModel):
    """实体基类"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ValueObject(BaseModel):
    """值对象基类"""

    # 值对象不可变，相等性基于值
    model_config = ConfigDict(frozen=True)


class DomainError(Exception):
    """领域错误基类"""

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class ValidationError(DomainError):
    """验证错误"""
    pass
