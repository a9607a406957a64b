"""Domain models for payment requests and per-member payment records."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from clubhub.domain.session.models import Identity


class PaymentStatus(str, Enum):
	PENDING = "pending"
	PAID = "paid"


class PaymentRequest(BaseModel):
	"""A club-wide charge joined with the payment_requests_with_status view."""

	id: str
	club_id: str
	title: str
	description: Optional[str] = None
	amount: Decimal
	due_date: Optional[date] = None
	created_by: str
	created_at: Optional[datetime] = None
	paid_count: int = 0
	total_count: int = 0

	model_config = ConfigDict(frozen=True, from_attributes=True, extra="ignore")

	@property
	def outstanding_count(self) -> int:
		return max(0, self.total_count - self.paid_count)


class PaymentRecord(BaseModel):
	"""One member's line on a payment request."""

	id: str
	request_id: str
	user_id: str
	status: PaymentStatus
	paid_at: Optional[datetime] = None
	transaction_ref: Optional[str] = None
	confirmed_by: Optional[str] = None
	created_at: Optional[datetime] = None
	user: Optional[Identity] = None
	payment_request: Optional[PaymentRequest] = None

	model_config = ConfigDict(frozen=True, from_attributes=True, extra="ignore")

	@property
	def is_paid(self) -> bool:
		return self.status == PaymentStatus.PAID
