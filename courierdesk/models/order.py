from enum import Enum
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, AliasChoices
from decimal import Decimal

class OrderStatus(str, Enum):
    ASSIGNED = "assigned"
    DELIVERED = "delivered"
    CANCELED = "canceled"
    PARTIAL = "partial"
    HAND_TO_HAND = "hand_to_hand"
    RETURN = "return"
    RECEIVING_PART = "receiving_part"

class CollectedBy(str, Enum):
    PAYMOB = "paymob"
    VALU = "valu"
    COURIER = "courier"

class PaymentSubType(str, Enum):
    ON_HAND = "on_hand"
    INSTAPAY = "instapay"
    WALLET = "wallet"
    VISA_MACHINE = "visa_machine"

class PaymentMethod(str, Enum):
    """Normalized payment method; raw import values are free text."""
    CASH = "cash"
    PAYMOB = "paymob"
    VALU = "valu"
    OTHER = "other"

class OrderProof(BaseModel):
    id: Optional[str] = None
    order_id: Optional[str] = None
    courier_id: Optional[str] = None
    # older rows store the URL under image_data
    image_url: str = Field(validation_alias=AliasChoices("image_url", "image_data"))
    created_at: Optional[datetime] = None

class Order(BaseModel):
    id: str
    order_id: str  # human facing order number, unique per import
    customer_name: str = ""
    address: str = ""
    billing_city: Optional[str] = None
    mobile_number: str = ""

    # Amounts
    total_order_fees: Decimal = Decimal("0")
    delivery_fee: Optional[Decimal] = None
    partial_paid_amount: Optional[Decimal] = None

    # Collection
    payment_method: str = ""
    payment_sub_type: Optional[PaymentSubType] = None
    collected_by: Optional[CollectedBy] = None
    status: OrderStatus = OrderStatus.ASSIGNED

    # Couriers
    assigned_courier_id: Optional[str] = None
    original_courier_id: Optional[str] = None

    archived: bool = False
    archived_at: Optional[datetime] = None

    notes: Optional[str] = None
    internal_comment: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    order_proofs: List[OrderProof] = []

    # Joined from users when the query asks for it
    courier_name: Optional[str] = None

class CourierStatusUpdate(BaseModel):
    status: OrderStatus
    delivery_fee: Optional[Decimal] = Field(None, ge=0)
    partial_paid_amount: Optional[Decimal] = Field(None, ge=0)
    collected_by: Optional[CollectedBy] = None
    payment_sub_type: Optional[PaymentSubType] = None
    internal_comment: Optional[str] = None

class OrderEdit(BaseModel):
    customer_name: Optional[str] = None
    address: Optional[str] = None
    billing_city: Optional[str] = None
    mobile_number: Optional[str] = None
    total_order_fees: Optional[Decimal] = Field(None, ge=0)
    payment_method: Optional[str] = None
    status: Optional[OrderStatus] = None
    notes: Optional[str] = None
    internal_comment: Optional[str] = None
