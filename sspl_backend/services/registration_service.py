"""
Registration Service - mirrors verified payments into player registrations

The registration row is created by the registration form; this module only
moves its payment fields once a checkout signature has been verified.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from sspl_backend.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    VERIFIED = "verified"
    FAILED = "failed"


# Both count as paid; VERIFIED is written when the store rejects COMPLETED
PAID_STATUSES = frozenset({PaymentStatus.COMPLETED, PaymentStatus.VERIFIED})


class ReconcileOutcome(str, Enum):
    RECONCILED = "reconciled"
    RECONCILED_WITH_FALLBACK = "reconciled_with_fallback"
    RECONCILIATION_FAILED = "reconciliation_failed"
    SKIPPED = "skipped"


@dataclass
class ReconcileResult:
    outcome: ReconcileOutcome
    registration_id: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    error: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status in PAID_STATUSES


class RegistrationStore:
    """Row-keyed updates on the player registrations table."""

    def __init__(self, client: AsyncClient, table: str = "player_registrations"):
        self.client = client
        self.table = table

    async def update_registration(self, registration_id: str, values: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Update one registration by id.

        Raises:
            StorageError: the write failed for any reason
        """
        try:
            response = await (
                self.client.table(self.table)
                .update(values)
                .eq("id", registration_id)
                .execute()
            )
        except APIError as e:
            raise StorageError(f"{e.code}: {e.message}")
        except httpx.HTTPError as e:
            raise StorageError(f"Store unreachable: {e}")
        except Exception as e:
            # e.g. an unreadable 200 body
            raise StorageError(f"Store update failed: {type(e).__name__}: {e}")
        return response.data

    async def ping(self) -> None:
        try:
            await self.client.table(self.table).select("id").limit(1).execute()
        except (APIError, httpx.HTTPError) as e:
            raise StorageError(str(e))


class RegistrationReconciler:
    """
    Applies a verified payment to its registration.

    Storage is best effort: the checkout signature has already been
    verified, so a failed write is reported in the result and logged,
    never raised.
    """

    def __init__(self, store: Optional[RegistrationStore]):
        self.store = store

    @staticmethod
    def payment_values(
        payment_status: PaymentStatus,
        payment_id: str,
        order_id: str,
        amount: Any,
    ) -> Dict[str, Any]:
        values = {
            "payment_status": payment_status.value,
            "razorpay_payment_id": payment_id,
            "razorpay_order_id": order_id,
            "status": "completed",
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        # Leave the amount recorded at registration alone when none was sent
        if amount is not None:
            values["payment_amount"] = amount
        return values

    async def _write(self, registration_id: str, values: Dict[str, Any]) -> Optional[str]:
        """One update attempt. Returns the failure message, or None on success."""
        try:
            await self.store.update_registration(registration_id, values)
        except StorageError as e:
            return e.message
        except Exception as e:
            logger.exception(f"Unexpected error updating registration {registration_id}")
            return str(e) or type(e).__name__
        return None

    async def reconcile(
        self,
        registration_id: Optional[str],
        payment_id: str,
        order_id: str,
        amount: Any = None,
    ) -> ReconcileResult:
        """
        Mark a registration paid.

        Tries payment_status "completed" first and retries once with
        "verified" if the write fails for any reason.
        """
        if not registration_id:
            return ReconcileResult(outcome=ReconcileOutcome.SKIPPED)

        if self.store is None:
            logger.error(
                f"Registration store not configured; payment {payment_id} "
                f"not recorded for registration {registration_id}"
            )
            return ReconcileResult(
                outcome=ReconcileOutcome.SKIPPED,
                registration_id=registration_id,
                error="Registration store not configured",
            )

        logger.info(f"Updating registration {registration_id} with payment {payment_id}")

        error = await self._write(
            registration_id,
            self.payment_values(PaymentStatus.COMPLETED, payment_id, order_id, amount),
        )
        if error is None:
            logger.info(f"Registration {registration_id} marked completed")
            return ReconcileResult(
                outcome=ReconcileOutcome.RECONCILED,
                registration_id=registration_id,
                payment_status=PaymentStatus.COMPLETED,
            )
        logger.error(f"Registration update failed for {registration_id}: {error}")

        error = await self._write(
            registration_id,
            self.payment_values(PaymentStatus.VERIFIED, payment_id, order_id, amount),
        )
        if error is not None:
            logger.error(
                f"Fallback registration update also failed for {registration_id} "
                f"(payment {payment_id}, order {order_id}): {error}"
            )
            return ReconcileResult(
                outcome=ReconcileOutcome.RECONCILIATION_FAILED,
                registration_id=registration_id,
                error=error,
            )

        logger.info(f"Registration {registration_id} marked verified (fallback status)")
        return ReconcileResult(
            outcome=ReconcileOutcome.RECONCILED_WITH_FALLBACK,
            registration_id=registration_id,
            payment_status=PaymentStatus.VERIFIED,
        )
