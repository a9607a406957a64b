"""Input schemas for payment mutations."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from clubhub.domain.payments.models import PaymentStatus


class PaymentRequestCreate(BaseModel):
	club_id: str
	title: str = Field(..., min_length=1, max_length=200)
	description: Optional[str] = None
	amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
	due_date: Optional[date] = None

	model_config = ConfigDict(extra="forbid")


class PaymentRequestUpdate(BaseModel):
	title: Optional[str] = Field(default=None, min_length=1, max_length=200)
	description: Optional[str] = None
	amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
	due_date: Optional[date] = None

	model_config = ConfigDict(extra="forbid")

	def changes(self) -> dict:
		return self.model_dump(mode="json", exclude_unset=True)


class PaymentStatusChange(BaseModel):
	"""The single update written to a payment record when its status changes.

	``paid_at`` and ``confirmed_by`` are both set when paid and both cleared
	otherwise; any other combination fails validation.
	"""

	status: PaymentStatus
	paid_at: Optional[datetime] = None
	confirmed_by: Optional[str] = None
	transaction_ref: Optional[str] = None

	model_config = ConfigDict(frozen=True, extra="forbid")

	@model_validator(mode="after")
	def _check_confirmation(self) -> "PaymentStatusChange":
		if self.status == PaymentStatus.PAID:
			if self.paid_at is None or not self.confirmed_by:
				raise ValueError("paid records need paid_at and confirmed_by")
		elif self.paid_at is not None or self.confirmed_by is not None:
			raise ValueError("unpaid records cannot carry paid_at or confirmed_by")
		return self

	@classmethod
	def build(
		cls,
		status: PaymentStatus,
		*,
		confirmer_id: str,
		transaction_ref: Optional[str] = None,
		now: Optional[datetime] = None,
	) -> "PaymentStatusChange":
		if status == PaymentStatus.PAID:
			return cls(
				status=status,
				paid_at=now or datetime.now(timezone.utc),
				confirmed_by=confirmer_id,
				transaction_ref=transaction_ref,
			)
		return cls(status=status, transaction_ref=transaction_ref)

	def as_update(self) -> dict:
		values = self.model_dump(mode="json", exclude={"transaction_ref"})
		# Existing references survive a status change unless a new one is given
		if self.transaction_ref:
			values["transaction_ref"] = self.transaction_ref
		return values
