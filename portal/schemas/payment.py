from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_serializer, field_validator

from portal.models.billing import PaymentStatus
from portal.schemas.common import CamelModel, money


class PaymentCreateIn(CamelModel):
    package_id: str = Field(min_length=1, max_length=50)
    amount: Decimal = Field(gt=0, max_digits=15, decimal_places=2)
    transaction_code: str = Field(min_length=1, max_length=100)


class PaymentVerifyIn(CamelModel):
    transaction_code: str = Field(min_length=1, max_length=100)


class PaymentSessionOut(CamelModel):
    transaction_id: int
    transaction_code: str
    package: Optional[str] = None
    amount: Decimal
    qr_code_url: Optional[str] = None
    status: PaymentStatus
    created_at: datetime
    remaining_time: Optional[int] = None

    @field_serializer("amount")
    def _amount(self, value: Decimal):
        return money(value)


class PaymentVerifiedOut(CamelModel):
    transaction_code: str
    amount: Decimal
    bank_ref_no: Optional[str] = None
    package: str
    silver_added: int
    base_silver: int
    bonus_silver: int
    verified_at: datetime

    @field_serializer("amount")
    def _amount(self, value: Decimal):
        return money(value)


class BankStatementEntry(CamelModel):
    """One credit line of the bank statement feed; unknown keys are ignored."""

    transaction_desc: str = ""
    credit_amount: Decimal = Decimal(0)
    ref_no: Optional[str] = None

    @field_validator("credit_amount", mode="before")
    @classmethod
    def _blank_credit(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return Decimal(0)
        if isinstance(v, str):
            return v.replace(",", "").strip()
        return v

    @field_validator("transaction_desc", mode="before")
    @classmethod
    def _blank_desc(cls, v):
        return "" if v is None else v

    @field_serializer("credit_amount")
    def _credit(self, value: Decimal):
        return money(value)


class BillingPackageOut(CamelModel):
    id: str
    name: str
    silver: int
    bonus: int
    price: int
    popular: bool
    packages: list[str]
    description: Optional[str] = None
    sort_order: int
