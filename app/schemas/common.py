from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class UserSummary(BaseModel):
    """사용자 요약 (id, "이름 성")"""
    id: int = Field(..., description="사용자 ID")
    name: str = Field(..., description="표시 이름")

    @classmethod
    def from_user(cls, user) -> "UserSummary":
        return cls(id=user.id, name=user.full_name)


class BookSummary(BaseModel):
    """책 요약"""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="책 ID")
    title: str = Field(..., description="제목")
    author: str = Field(default="", description="저자")
    condition: Optional[str] = Field(None, description="책 상태")
