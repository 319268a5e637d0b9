"""Pydantic models for request bodies and gateway payloads."""

from pydantic import BaseModel, ConfigDict, Field

from photo_unlock.domain.transactions import CallbackResult
from photo_unlock.services.callbacks import parse_callback_metadata


class StkPushRequest(BaseModel):
    """Body of a push-payment initiation."""

    model_config = ConfigDict(extra="forbid")

    phone_number: str
    amount: float
    user_id: str
    photo_ids: list[str] = Field(min_length=1)
    transaction_desc: str | None = None
    account_reference: str | None = None


class StkQueryRequest(BaseModel):
    """Body of a push-payment status query."""

    model_config = ConfigDict(extra="forbid")

    checkout_request_id: str = Field(min_length=1)


class CallbackItem(BaseModel):
    """One named value of the callback metadata."""

    name: str = Field(alias="Name")
    value: str | int | float | None = Field(default=None, alias="Value")


class CallbackMetadata(BaseModel):
    """Metadata attached to a successful payment."""

    items: list[CallbackItem] = Field(default_factory=list, alias="Item")


class StkCallback(BaseModel):
    """Result notification for a single push request."""

    model_config = ConfigDict(populate_by_name=True)

    merchant_request_id: str | None = Field(default=None, alias="MerchantRequestID")
    checkout_request_id: str = Field(alias="CheckoutRequestID")
    result_code: int = Field(alias="ResultCode")
    result_desc: str = Field(default="", alias="ResultDesc")
    callback_metadata: CallbackMetadata | None = Field(
        default=None, alias="CallbackMetadata"
    )


class CallbackBody(BaseModel):
    """Body wrapper of the gateway callback."""

    stk_callback: StkCallback = Field(alias="stkCallback")


class CallbackEnvelope(BaseModel):
    """Top-level gateway callback payload."""

    body: CallbackBody = Field(alias="Body")

    def to_result(self) -> CallbackResult:
        """Convert the payload into a typed callback result."""
        callback = self.body.stk_callback
        receipt = None
        if callback.callback_metadata is not None:
            receipt = parse_callback_metadata(
                (item.name, item.value) for item in callback.callback_metadata.items
            )
        return CallbackResult(
            checkout_request_id=callback.checkout_request_id,
            merchant_request_id=callback.merchant_request_id,
            result_code=callback.result_code,
            result_desc=callback.result_desc,
            receipt=receipt,
        )


class BulkDeleteRequest(BaseModel):
    """Body of a multi-image deletion."""

    model_config = ConfigDict(extra="forbid")

    image_ids: list[str] = Field(min_length=1)
