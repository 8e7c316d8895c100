from pydantic import AfterValidator, BaseModel, Field, ConfigDict, EmailStr
from typing import Annotated, List, Optional
from datetime import date, datetime
from decimal import Decimal

# Exact amounts with at most two fractional digits; serialized as strings ("25.50").
Amount = Annotated[Decimal, Field(max_digits=12, decimal_places=2)]

def _reject_duplicates(ids: List[int]) -> List[int]:
    if len(set(ids)) != len(ids):
        raise ValueError("user ids must be unique")
    return ids

UserIds = Annotated[List[int], Field(min_length=1), AfterValidator(_reject_duplicates)]

class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    avatar: Optional[str] = None

class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    avatar: Optional[str] = None

class UserOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    avatar: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)

class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    created_by: int

class GroupUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None

class GroupOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_by: int
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)

class UserGroupOut(GroupOut):
    joined_at: datetime

class MemberOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    joined_at: datetime

class GroupWithMembersOut(GroupOut):
    members: List[MemberOut]

class AddMembers(BaseModel):
    user_ids: UserIds

class AddedMemberOut(BaseModel):
    user_id: int
    user_name: str
    joined_at: datetime

class ShareIn(BaseModel):
    user_id: int
    share_amount: Amount = Field(ge=0)

class TransactionCreate(BaseModel):
    group_id: int
    paid_by: int
    total_amount: Amount = Field(gt=0)
    description: Optional[str] = None
    transaction_date: date
    participants: List[ShareIn] = Field(min_length=1)

class QuickSplitCreate(BaseModel):
    group_id: int
    paid_by: int
    total_amount: Amount = Field(gt=0)
    description: Optional[str] = None
    transaction_date: date
    participant_ids: UserIds

class ShareOut(BaseModel):
    user_id: int
    user_name: str
    share_amount: Decimal

class TransactionOut(BaseModel):
    id: int
    group_id: int
    group_name: str
    paid_by: int
    paid_by_name: str
    total_amount: Decimal
    description: Optional[str] = None
    transaction_date: date
    created_at: datetime
    participants: List[ShareOut]

class TransactionSummaryOut(BaseModel):
    id: int
    total_amount: Decimal
    description: Optional[str] = None
    transaction_date: date
    paid_by_name: str
    participant_count: int
    created_at: datetime

class MemberBalanceOut(BaseModel):
    user_id: int
    user_name: str
    balance: Decimal                      # > 0 should receive, < 0 owes

class BalanceSheetOut(BaseModel):
    group_id: int
    group_name: str
    members: List[MemberBalanceOut]
    total_transactions: int
    last_updated: Optional[datetime] = None

class SettleIn(BaseModel):
    settled_by: int
    description: Optional[str] = None

class SettledBalanceOut(BaseModel):
    user_id: int
    balance_before: Decimal

class SettlementOut(BaseModel):
    id: int
    group_id: int
    group_name: str
    settled_by: int
    settled_by_name: str
    description: Optional[str] = None
    settled_at: datetime
    balances_before: List[SettledBalanceOut]
