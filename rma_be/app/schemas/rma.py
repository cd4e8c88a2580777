from pydantic import BaseModel, EmailStr, Field
from typing import List, Literal, Optional
from datetime import datetime
from decimal import Decimal

from app.schemas.playbook import Playbook, PlaybookStep
from app.schemas.troubleshooting import TroubleshootingRecord


class CustomerIn(BaseModel):
    id: Optional[str] = None
    email: Optional[EmailStr] = None


class StartRmaIn(BaseModel):
    brand: str = Field(min_length=1)
    orderId: str = Field(min_length=1)
    orderItemId: str = Field(min_length=1)
    sku: str = Field(min_length=1)
    customer: CustomerIn


class StartRmaOut(BaseModel):
    rmaId: str
    rmaSessionToken: str
    warrantyEligible: bool
    skuGroupName: str
    nextAction: str = "TROUBLESHOOTING"


class RmaOut(BaseModel):
    rmaId: str
    brand: str
    orderId: str
    orderItemId: str
    sku: str
    skuGroupName: str
    isInternational: bool
    warrantyEligible: bool
    warrantyEndDate: Optional[datetime] = None
    warrantyReasonCode: Optional[str] = None
    status: str
    customerSelectedReturnMethod: Optional[str] = None
    carrierPreference: Optional[str] = None
    benchTestFeeAmount: Decimal
    acceptedBenchFeeTerms: bool
    acceptedAt: Optional[datetime] = None
    acceptedIP: Optional[str] = None
    acceptedUserAgent: Optional[str] = None
    hubSpotTicketId: Optional[str] = None
    hubSpotContactId: Optional[str] = None
    hubSpotDealId: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime


class RmaViewOut(BaseModel):
    rma: RmaOut
    troubleshooting: Optional[TroubleshootingRecord] = None
    playbook: Optional[Playbook] = None
    nextStep: Optional[PlaybookStep] = None
    isComplete: bool
    flowEnded: bool


class StepCompleteOut(BaseModel):
    nextStep: Optional[PlaybookStep] = None
    isComplete: bool
    status: str


AuthorizationDecision = Literal["AUTHORIZED", "NEEDS_REVIEW", "DENIED"]


class AuthorizationOut(BaseModel):
    decision: AuthorizationDecision
    reasonCode: str
    reasonMessage: Optional[str] = None


class LabelOption(BaseModel):
    id: str
    carrier: str
    service: str
    rate: str
    billingMode: str = "PREPAID"
    shipmentId: Optional[str] = None


class LabelOptionsOut(BaseModel):
    options: List[LabelOption]
    status: str


class LabelPurchaseIn(BaseModel):
    carrier: str = Field(min_length=1)
    service: str = Field(min_length=1)
    rateId: str = Field(min_length=1)


class LabelPurchaseOut(BaseModel):
    trackingNumber: str
    carrier: str
    service: str
    labelUrl: str


class SelfShipIn(BaseModel):
    carrier: str = Field(min_length=1)
    trackingNumber: str = Field(min_length=1)


def map_rma_to_out(rma) -> RmaOut:
    return RmaOut(
        rmaId=rma.rma_id,
        brand=rma.brand,
        orderId=rma.order_id,
        orderItemId=rma.order_item_id,
        sku=rma.sku,
        skuGroupName=rma.sku_group_name,
        isInternational=bool(rma.is_international),
        warrantyEligible=bool(rma.warranty_eligible),
        warrantyEndDate=rma.warranty_end_date,
        warrantyReasonCode=rma.warranty_reason_code,
        status=rma.status,
        customerSelectedReturnMethod=rma.customer_selected_return_method,
        carrierPreference=rma.carrier_preference,
        benchTestFeeAmount=rma.bench_test_fee_amount,
        acceptedBenchFeeTerms=bool(rma.accepted_bench_fee_terms),
        acceptedAt=rma.accepted_at,
        acceptedIP=rma.accepted_ip,
        acceptedUserAgent=rma.accepted_user_agent,
        hubSpotTicketId=rma.hubspot_ticket_id,
        hubSpotContactId=rma.hubspot_contact_id,
        hubSpotDealId=rma.hubspot_deal_id,
        createdAt=rma.created_at,
        updatedAt=rma.updated_at,
    )
