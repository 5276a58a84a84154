from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

_camel = {"alias_generator": to_camel, "populate_by_name": True}


class PushKeys(BaseModel):
    # Key names are fixed by the Push API and already lower-case on the wire.
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class PushSubscription(BaseModel):
    """A push channel as the platform hands it out (the browser's toJSON())."""

    endpoint: str = Field(..., min_length=1, max_length=1000)
    keys: PushKeys
    expiration_time: float | None = None

    model_config = _camel

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class VapidKey(BaseModel):
    public_key: str | None = None
    available: bool = False

    model_config = _camel


class SubscriptionRegister(BaseModel):
    subscription: PushSubscription
    device_label: str = Field("Unknown Device", max_length=100)

    model_config = _camel


class SubscriptionAck(BaseModel):
    status: str
    subscription_id: int | None = None

    model_config = _camel


class DeviceRegistrationResponse(BaseModel):
    id: int
    endpoint: str
    device_label: str
    user_agent: str | None = None
    is_active: bool
    failure_count: int = 0
    last_used_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {**_camel, "from_attributes": True}
