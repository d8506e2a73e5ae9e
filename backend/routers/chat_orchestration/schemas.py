"""
Relay Event Schemas - real-time event names and inbound payload validation

Frames in both directions are JSON envelopes: {"event": <name>, "data": <payload>}.
Inbound payloads are validated here so malformed input never reaches the
router's business logic.
"""

from typing import Any, Optional, Type, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from errors import ErrorCode, ValidationError

# Inbound
JOIN_CHAT = "join_chat"
JOIN_CHAT_AS_AGENT = "join_chat_as_agent"
HUMAN_JOINED = "human_joined"
SEND_MESSAGE = "send_message"
END_SESSION = "end_session"
LEAVE_CHAT = "leave_chat"
CLEAR_CHAT = "clear_chat"

# Outbound
RECEIVE_MESSAGE = "receive_message"
TYPING_INDICATOR = "typing_indicator"
HUMAN_NEEDED = "human_needed"
STAFF_LEFT = "staff_left"
JOIN_CONFIRMATION = "join_confirmation"
ERROR = "error"

MAX_MESSAGE_LENGTH = 5000


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)


class CustomerPayload(_Payload):
    """Payload naming a single conversation."""

    customer_id: str = Field(validation_alias=AliasChoices("customerId", "userId", "customer_id"))

    @field_validator("customer_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        # Storefront ids are integers; clients send either form
        if isinstance(value, bool):
            raise ValueError("customerId must be a string or integer")
        if isinstance(value, int):
            return str(value)
        return value


class AgentPayload(CustomerPayload):
    agent_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("agentName", "agent_name"))


class SendMessagePayload(CustomerPayload):
    message: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)
    is_customer: Optional[bool] = Field(default=None, validation_alias=AliasChoices("isCustomer", "is_customer"))
    id: Optional[str] = None
    username: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_message_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


P = TypeVar("P", bound=BaseModel)


def parse_payload(model: Type[P], data: Any) -> P:
    """Validate an inbound payload.

    A bare string or integer is read as the customer id, which is how
    clients send ``join_chat``.

    Raises:
        ValidationError: When the payload does not match the model
    """
    if isinstance(data, (str, int)) and not isinstance(data, bool):
        data = {"customerId": data}
    if not isinstance(data, dict):
        raise ValidationError(
            "Invalid payload",
            details="Expected an object",
            code=ErrorCode.VALIDATION_INVALID_FORMAT,
            received=type(data).__name__,
        )
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        parameter = ".".join(str(p) for p in first.get("loc", ())) or None
        raise ValidationError(
            "Invalid payload",
            details=first.get("msg"),
            code=ErrorCode.VALIDATION_INVALID_FORMAT,
            parameter=parameter,
        ) from e
