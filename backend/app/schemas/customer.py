from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class CustomerBase(BaseModel):
    name: str = Field(min_length=1)
    is_unknown: bool = False


class CustomerCreate(CustomerBase):
    pass


class CustomerRename(BaseModel):
    name: str = Field(min_length=1)


class CustomerMerge(BaseModel):
    target_customer_id: int


class Customer(CustomerBase):
    id: int
    diagram_count: Optional[int] = None
    open_action_items: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerList(BaseModel):
    customers: List[Customer]
    total: int
