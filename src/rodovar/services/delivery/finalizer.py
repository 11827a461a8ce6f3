"""Proof of delivery: the only way a shipment becomes DELIVERED."""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from ...errors import DeliveryRejected, PositionUnavailable
from ...models.domain import ProofOfDelivery, Shipment, TrackingStatus
from ...persistence.shipments import ShipmentStore, StoreWrite
from ..tracking.position import PositionSource
from ..tracking.session import SessionState, TrackingSession

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DeliveryResult:
    shipment: Shipment
    write: StoreWrite


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def finalize_delivery(
    shipment: Shipment,
    receiver_name: str,
    receiver_doc: str,
    signature_image: str,
    photo_image: str,
    *,
    store: ShipmentStore,
    position_source: PositionSource,
    session: TrackingSession | None = None,
    online: bool | None = None,
    refetch: bool = False,
    position_timeout: float | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> DeliveryResult:
    """Attach a proof of delivery and close the shipment.

    The receiver's name and document, the signature and the photo are all
    required, and the device must produce a position fix; otherwise the
    shipment is left exactly as it was. On success the delivered snapshot is
    written like a tracking tick (store when online, offline slot otherwise)
    and the tracking session for the code is closed for good. If that write
    fails the session is reopened.

    Args:
        shipment: Snapshot the driver is finalizing. Not modified.
        online: Override for the store's connectivity flag.
        refetch: Re-read the shipment from the store once ticks are fenced
            out, so the delivered snapshot carries the latest position.
        position_timeout: Bound for the position fix; defaults to the session's I/O timeout.

    Raises:
        DeliveryRejected: missing input, already delivered, or no position.
    """
    fields = {
        "receiver name": receiver_name,
        "receiver document": receiver_doc,
        "signature": signature_image,
        "photo": photo_image,
    }
    missing = [name for name, value in fields.items() if not value or not value.strip()]
    if missing:
        raise DeliveryRejected(f"Missing {', '.join(missing)}: fill every field, sign and take the photo")
    if shipment.is_delivered or shipment.proof is not None:
        raise DeliveryRejected(f"Shipment {shipment.code} is already delivered")

    timeout = position_timeout if position_timeout is not None else (session.io_timeout if session else None)
    try:
        if timeout is None:
            position = await position_source.current_position()
        else:
            position = await asyncio.wait_for(position_source.current_position(), timeout)
    except PositionUnavailable as e:
        raise DeliveryRejected(f"Location required to validate the delivery: {e}") from e
    except asyncio.TimeoutError as e:
        raise DeliveryRejected("Location required to validate the delivery: position timeout") from e

    # no tick may overwrite the delivered record after this point
    previous = session.state if session is not None else None
    if session is not None:
        await session.complete()

    try:
        if refetch:
            # pick up any tick that landed before the session was closed
            shipment = await asyncio.to_thread(store.get, shipment.code)
            if shipment.is_delivered or shipment.proof is not None:
                previous = SessionState.COMPLETED
                raise DeliveryRejected(f"Shipment {shipment.code} is already delivered")

        now = clock()
        delivered = copy.deepcopy(shipment)
        delivered.proof = ProofOfDelivery(
            receiver_name=receiver_name.strip(),
            receiver_doc=receiver_doc.strip(),
            signature_image=signature_image,
            photo_image=photo_image,
            timestamp=now,
            location=position,
        )
        delivered.status = TrackingStatus.DELIVERED
        delivered.progress = 100
        delivered.is_live = False
        delivered.message = f"Delivered to {delivered.proof.receiver_name} (Doc: {delivered.proof.receiver_doc})"
        delivered.last_update = now

        is_online = store.is_online if online is None else online
        if is_online:
            write = await asyncio.to_thread(store.upsert, delivered)
        else:
            await asyncio.to_thread(store.queue_offline, delivered)
            write = StoreWrite.LOCAL_ONLY
    except Exception:
        if session is not None:
            await session.reopen(previous)
        raise

    if write is StoreWrite.LOCAL_ONLY:
        logger.warning(f"Delivery of {delivered.code} saved locally, will sync on reconnect")
    else:
        logger.info(f"Delivery of {delivered.code} finalized")
    return DeliveryResult(shipment=delivered, write=write)
