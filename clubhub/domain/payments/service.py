"""Payment ledger: payment requests per club and member records per request."""

from __future__ import annotations

import logging
from typing import List, Optional

from clubhub.domain.clubs import policy
from clubhub.domain.clubs.service import ClubDirectory
from clubhub.domain.exceptions import NotFoundError
from clubhub.domain.payments.models import PaymentRecord, PaymentRequest, PaymentStatus
from clubhub.domain.payments.schemas import PaymentRequestCreate, PaymentRequestUpdate, PaymentStatusChange
from clubhub.domain.session.service import SessionStore
from clubhub.infra.keyed_cache import KeyedCollectionCache
from clubhub.infra.remote import RemoteRepository
from clubhub.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)


class PaymentLedger:
	"""Handles payment request lifecycle and record status changes.

	Paid/total counts are read from payment_requests_with_status only.
	Records are created by the service when a request is issued; the ledger
	only ever changes their status.
	"""

	def __init__(self, remote: RemoteRepository, session: SessionStore, directory: ClubDirectory) -> None:
		self.remote = remote
		self.session = session
		self.directory = directory
		self._requests: KeyedCollectionCache[str, PaymentRequest] = KeyedCollectionCache("club_payments")
		self._details: KeyedCollectionCache[str, PaymentRequest] = KeyedCollectionCache("payment_details")
		self._records: KeyedCollectionCache[str, PaymentRecord] = KeyedCollectionCache("payment_records")
		self._outstanding: KeyedCollectionCache[str, PaymentRecord] = KeyedCollectionCache("outstanding_payments")
		self._current_payment: Optional[PaymentRequest] = None

	@property
	def current_payment(self) -> Optional[PaymentRequest]:
		return self._current_payment

	def set_current_payment(self, request: Optional[PaymentRequest]) -> None:
		self._current_payment = request

	def get_club_payments(self, club_id: str) -> Optional[List[PaymentRequest]]:
		return self._requests.get(club_id)

	def get_payment(self, request_id: str) -> Optional[PaymentRequest]:
		cached = self._details.get(request_id)
		return cached[0] if cached else None

	def get_payment_records(self, request_id: str) -> Optional[List[PaymentRecord]]:
		return self._records.get(request_id)

	def get_outstanding_payments(self) -> List[PaymentRecord]:
		identity = self.session.identity
		if identity is None:
			return []
		return self._outstanding.get(identity.id) or []

	def can_manage_payments(self, club_id: str) -> bool:
		return policy.can_manage_payments(self.directory.get_user_role(club_id))

	async def fetch_club_payments(self, club_id: str) -> List[PaymentRequest]:
		return await self._requests.load(club_id, lambda: self.remote.list_payment_requests_with_status(club_id))

	async def fetch_payment_by_id(self, request_id: str) -> PaymentRequest:
		async def _load() -> List[PaymentRequest]:
			request = await self.remote.get_payment_request_with_status(request_id)
			if request is None:
				raise NotFoundError("payment_request_not_found")
			return [request]

		loaded = await self._details.load(request_id, _load)
		committed = self.get_payment(request_id)
		if committed is not None:
			self._current_payment = committed
		return loaded[0]

	async def fetch_payment_records(self, request_id: str) -> List[PaymentRecord]:
		return await self._records.load(request_id, lambda: self.remote.list_payment_records(request_id))

	async def fetch_user_outstanding_payments(self) -> List[PaymentRecord]:
		"""Pending records of the identity across all clubs."""
		identity = self.session.identity
		if identity is None:
			return []
		return await self._outstanding.load(identity.id, lambda: self.remote.list_outstanding_records(identity.id))

	async def create_payment_request(self, payload: PaymentRequestCreate) -> PaymentRequest:
		identity = self.session.require_identity()
		created = await self.remote.insert_payment_request(payload.model_dump(mode="json"), created_by=identity.id)
		obs_metrics.inc_store_mutation("payments", "create")
		_LOG.info("payment request created", extra={"request_id": created.id, "club_id": created.club_id})
		requests = await self.fetch_club_payments(created.club_id)
		await self._refresh_outstanding()
		return next((request for request in requests if request.id == created.id), created)

	async def update_payment_request(self, request_id: str, changes: PaymentRequestUpdate) -> PaymentRequest:
		updated = await self.remote.update_payment_request(request_id, changes.changes())
		if updated is None:
			raise NotFoundError("payment_request_not_found")
		obs_metrics.inc_store_mutation("payments", "update")
		request = await self.fetch_payment_by_id(request_id)
		if request.club_id in self._requests:
			await self.fetch_club_payments(request.club_id)
		return request

	async def delete_payment_request(self, request_id: str) -> None:
		deleted = await self.remote.delete_payment_request(request_id)
		if deleted is None:
			raise NotFoundError("payment_request_not_found")
		obs_metrics.inc_store_mutation("payments", "delete")
		_LOG.info("payment request deleted", extra={"request_id": request_id, "club_id": deleted.club_id})
		self._details.invalidate(request_id)
		self._records.invalidate(request_id)
		if self._current_payment is not None and self._current_payment.id == request_id:
			self._current_payment = None
		await self.fetch_club_payments(deleted.club_id)
		await self._refresh_outstanding()

	async def update_payment_status(
		self,
		record_id: str,
		status: PaymentStatus,
		transaction_ref: Optional[str] = None,
	) -> PaymentRecord:
		"""Mark a record paid or pending in one update, then refetch its request.

		Paid sets ``paid_at`` and ``confirmed_by`` together; any other status
		clears both.
		"""
		identity = self.session.require_identity()
		change = PaymentStatusChange.build(
			PaymentStatus(status),
			confirmer_id=identity.id,
			transaction_ref=transaction_ref,
		)
		record = await self.remote.update_payment_record(record_id, change.as_update())
		if record is None:
			raise NotFoundError("payment_record_not_found")
		obs_metrics.inc_store_mutation("payments", f"status_{change.status.value}")
		_LOG.info(
			"payment status updated",
			extra={"record_id": record_id, "request_id": record.request_id, "status": change.status.value},
		)
		await self.fetch_payment_records(record.request_id)
		request = await self.fetch_payment_by_id(record.request_id)
		if request.club_id in self._requests:
			await self.fetch_club_payments(request.club_id)
		await self._refresh_outstanding()
		return record

	def forget_club(self, club_id: str) -> None:
		self._requests.invalidate(club_id)
		for request_id in self._details.keys():
			request = self.get_payment(request_id)
			if request is not None and request.club_id == club_id:
				self._details.invalidate(request_id)
				self._records.invalidate(request_id)
		for user_id in self._outstanding.keys():
			self._outstanding.patch(
				user_id,
				lambda records: [r for r in records if r.payment_request is None or r.payment_request.club_id != club_id],
			)
		if self._current_payment is not None and self._current_payment.club_id == club_id:
			self._current_payment = None

	def reset(self) -> None:
		self._requests.clear()
		self._details.clear()
		self._records.clear()
		self._outstanding.clear()
		self._current_payment = None

	async def _refresh_outstanding(self) -> None:
		identity = self.session.identity
		if identity is not None and identity.id in self._outstanding:
			await self.fetch_user_outstanding_payments()
