from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class MenuItemOut(BaseModel):
    id: int
    name: str
    description: str = ""
    price: float
    image: Optional[str] = None
    quantity: int = 0
    sales: int = 0
    category: Optional[str] = None
    created_at: Optional[datetime] = None


class MenuItemCreate(BaseModel):
    name: str
    description: str = ""
    price: float = Field(ge=0)
    image: Optional[str] = None
    quantity: int = Field(default=0, ge=0)
    sales: int = Field(default=0, ge=0)
    category: Optional[str] = None


class MenuItemUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    image: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    sales: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = None
