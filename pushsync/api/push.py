"""
Web Push device registry.

GET    /push/vapid-key                 - VAPID public key + whether push is configured
POST   /push/subscriptions             - upsert a device registration for the current user
DELETE /push/subscriptions/{endpoint}  - remove the registration for a push endpoint
GET    /push/devices                   - list the current user's registrations
DELETE /push/devices/{device_id}       - remove a registration by id
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from pushsync.api.deps import get_current_user
from pushsync.config import settings
from pushsync.database import get_db
from pushsync.models.push_subscription import PushSubscription
from pushsync.models.user import User
from pushsync.schemas.push import (
    DeviceRegistrationResponse,
    SubscriptionAck,
    SubscriptionRegister,
    VapidKey,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/push", tags=["push"])


@router.get("/vapid-key", response_model=VapidKey)
async def get_vapid_key() -> VapidKey:
    """Return the VAPID public key so the client can open a push channel."""
    if not settings.VAPID_PUBLIC_KEY:
        return VapidKey(public_key=None, available=False)
    return VapidKey(public_key=settings.VAPID_PUBLIC_KEY, available=True)


@router.post("/subscriptions", response_model=SubscriptionAck)
async def register_subscription(
    data: SubscriptionRegister,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubscriptionAck:
    """Upsert a push subscription. The endpoint is the identity of a device."""
    sub_in = data.subscription
    user_agent = (request.headers.get("user-agent") or "")[:500] or None

    existing = db.query(PushSubscription).filter_by(endpoint=sub_in.endpoint).first()
    if existing:
        existing.user_id = current_user.id
        existing.p256dh = sub_in.keys.p256dh
        existing.auth = sub_in.keys.auth
        existing.device_label = data.device_label
        existing.user_agent = user_agent
        existing.is_active = True
        existing.failure_count = 0
        registration = existing
    else:
        registration = PushSubscription(
            user_id=current_user.id,
            endpoint=sub_in.endpoint,
            p256dh=sub_in.keys.p256dh,
            auth=sub_in.keys.auth,
            device_label=data.device_label,
            user_agent=user_agent,
        )
        db.add(registration)
    db.commit()
    db.refresh(registration)
    logger.info("Push subscription %s registered for user %s (%s)", registration.id, current_user.id, data.device_label)
    return SubscriptionAck(status="subscribed", subscription_id=registration.id)


@router.delete("/subscriptions/{endpoint:path}", response_model=SubscriptionAck)
async def delete_subscription(
    endpoint: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubscriptionAck:
    """Remove a push subscription. Deleting an unknown endpoint is not an error."""
    removed = (
        db.query(PushSubscription)
        .filter_by(endpoint=endpoint, user_id=current_user.id)
        .delete()
    )
    db.commit()
    if removed:
        logger.info("Push subscription removed for user %s", current_user.id)
    return SubscriptionAck(status="unsubscribed")


@router.get("/devices", response_model=list[DeviceRegistrationResponse])
async def list_devices(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[DeviceRegistrationResponse]:
    devices = (
        db.query(PushSubscription)
        .filter_by(user_id=current_user.id)
        .order_by(PushSubscription.id)
        .all()
    )
    return [DeviceRegistrationResponse.model_validate(d) for d in devices]


@router.delete("/devices/{device_id}", response_model=SubscriptionAck)
async def delete_device(
    device_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubscriptionAck:
    device = db.query(PushSubscription).filter_by(id=device_id, user_id=current_user.id).first()
    if not device:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
    db.delete(device)
    db.commit()
    return SubscriptionAck(status="unsubscribed", subscription_id=device_id)
