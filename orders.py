"""Order lifecycle: gateway order creation and payment verification.

An order document is written only after the gateway accepted the order, and
is moved to Paid or Failed exactly once by ``verify_payment``.
"""

import logging
from typing import List, Optional

from bson.objectid import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

import database
from errors import OrderAlreadyFinalized, OrderNotFound, PersistenceError, ValidationError, VerificationMismatch
from payments import RazorpayGateway, make_receipt, to_minor_units, verify_signature
from schemas import OPEN_STATUSES, CustomerDetails, LineItem, Order, OrderStatus, OrderSummary

logger = logging.getLogger("checkout.orders")


class OrderService:
    def __init__(self, db: Database, gateway: RazorpayGateway, signing_secret: str, default_currency: str = "INR"):
        self._db = db
        self._gateway = gateway
        self._signing_secret = signing_secret
        self._default_currency = default_currency

    @property
    def collection(self):
        return self._db[database.ORDER]

    def create_order(
        self,
        *,
        items: List[LineItem],
        customer: CustomerDetails,
        total: float,
        summary: Optional[OrderSummary] = None,
        currency: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> dict:
        """Create the gateway order, then persist it with status Created.

        Returns the fields the storefront needs to open the checkout widget:
        gateway order id, confirmed amount, currency and public key id.
        """
        amount = to_minor_units(total)
        if amount < 1:
            raise ValidationError("Amount is below the smallest currency unit")
        receipt = make_receipt()
        gw_order = self._gateway.create_order(
            amount=amount,
            currency=currency or self._default_currency,
            receipt=receipt,
            notes={"customer_email": customer.email},
        )

        order = Order(
            order_id=gw_order["id"],
            receipt=receipt,
            items=items,
            subtotal=summary.subtotal if summary else None,
            shipping=summary.shipping if summary else None,
            total=total,
            amount=gw_order["amount"],
            currency=gw_order["currency"],
            customer=customer,
            user_id=ObjectId(user_id) if user_id else None,
            status=OrderStatus.CREATED,
        )
        try:
            database.create_document(self._db, database.ORDER, order.to_document())
        except PyMongoError as e:
            # the gateway order exists without a local record; nothing reconciles it
            logger.exception("order persistence failed", extra={"order_id": order.order_id})
            raise PersistenceError("Error creating order") from e

        logger.info("order created", extra={"order_id": order.order_id, "amount": order.amount, "currency": order.currency})
        return {
            "id": order.order_id,
            "amount": order.amount,
            "currency": order.currency,
            "key": self._gateway.key_id,
        }

    def verify_payment(self, order_id: str, payment_id: str, signature: str) -> dict:
        """Check the checkout signature and settle the order.

        Raises VerificationMismatch after marking the order Failed when the
        signature is wrong. Orders that are already Paid or Failed are not
        changed; a replay that agrees with the stored outcome is answered
        the same way again.
        """
        ok = verify_signature(self._signing_secret, order_id, payment_id, signature)
        now = database.utcnow()
        if ok:
            update = {"payment_id": payment_id, "signature": signature, "status": OrderStatus.PAID.value, "updated_at": now}
        else:
            update = {"status": OrderStatus.FAILED.value, "updated_at": now}

        try:
            doc = self.collection.find_one_and_update(
                {"order_id": order_id, "status": {"$in": OPEN_STATUSES}},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
            if doc is None:
                doc = self.collection.find_one({"order_id": order_id})
                if doc is None:
                    logger.warning("verification for unknown order", extra={"order_id": order_id})
                    raise OrderNotFound()
                self._check_replay(doc, ok, payment_id)
        except PyMongoError as e:
            logger.exception("order update failed", extra={"order_id": order_id})
            raise PersistenceError("Error verifying payment") from e

        if not ok:
            logger.warning("invalid signature", extra={"order_id": order_id})
            raise VerificationMismatch()

        logger.info("payment verified", extra={"order_id": order_id, "payment_id": payment_id})
        return database.to_dict(doc)

    @staticmethod
    def _check_replay(doc: dict, ok: bool, payment_id: str) -> None:
        status = doc.get("status")
        if ok and status == OrderStatus.PAID.value and doc.get("payment_id") == payment_id:
            return
        if not ok and status == OrderStatus.FAILED.value:
            return
        logger.warning("order already finalized", extra={"order_id": doc.get("order_id"), "status": status})
        raise OrderAlreadyFinalized()

    def list_for_user(self, user_id: str) -> List[dict]:
        try:
            return database.get_documents(
                self._db,
                database.ORDER,
                {"user_id": ObjectId(user_id)},
                sort=[("created_at", DESCENDING)],
            )
        except PyMongoError as e:
            logger.exception("order listing failed", extra={"user_id": user_id})
            raise PersistenceError("Error fetching orders") from e
