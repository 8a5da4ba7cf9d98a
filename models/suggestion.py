"""
Pydantic models for the suggestion pipeline.

Wire format is camelCase (the browser extension speaks it); attributes are
snake_case. Both request shapes the extension can send are normalised into
``SuggestionRequest`` before they reach the orchestrator.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter

NextAction = Literal["ask_availability", "send_booking_link", "answer_question", "close"]
NEXT_ACTIONS: tuple[str, ...] = ("ask_availability", "send_booking_link", "answer_question", "close")

JobStatus = Literal["pending", "processing", "completed", "failed"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})


class WireModel(BaseModel):
    """Base for camelCase wire models."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ThreadMessage(WireModel):
    """One message of the scraped conversation"""

    sender_id: str = Field(..., alias="senderId", description="Opaque sender identifier")
    text: str = Field(..., description="Message text")
    timestamp: float = Field(..., description="Epoch milliseconds")
    is_user: bool = Field(..., alias="isUser", description="True when sent by the seller")


class SuggestionRequest(WireModel):
    """Canonical suggestion request"""

    thread_id: str = Field(..., alias="threadId", description="Client-side thread ID")
    fb_thread_id: str = Field(..., alias="fbThreadId", description="Marketplace thread ID")
    listing_id: Optional[str] = Field(None, alias="listingId", description="Listing ID")
    listing_title: Optional[str] = Field(None, alias="listingTitle", description="Listing title")
    listing_price: Optional[str] = Field(None, alias="listingPrice", description="Listing price as displayed")
    listing_url: Optional[str] = Field(None, alias="listingUrl", description="Listing URL")
    conversation_goal: str = Field(
        "general", alias="conversationGoal", min_length=1, description="sell_item, buy_item, negotiate, arrange_pickup or general"
    )
    quick_question: Optional[str] = Field(None, alias="quickQuestion", min_length=1, description="One-off hint for this reply")
    custom_instructions: Optional[str] = Field(
        None, alias="customInstructions", min_length=1, description="Free-text customization (paid plans)"
    )
    saved_preset_id: Optional[str] = Field(None, alias="savedPresetId", min_length=1, description="Saved goal preset (paid plans)")
    messages: List[ThreadMessage] = Field(..., description="Conversation history, oldest first")

    @property
    def uses_premium_features(self) -> bool:
        return self.custom_instructions is not None or self.saved_preset_id is not None


class ListingData(WireModel):
    id: Optional[str] = None
    title: Optional[str] = None
    price: Optional[Union[int, float, str]] = None


class ContextMessage(WireModel):
    sender_type: str = Field(..., alias="senderType", description="'user' for the seller")
    text: str
    timestamp: float


class ThreadContextPayload(WireModel):
    """Alternate shape emitted by the DOM watcher"""

    thread_id: str = Field(..., alias="threadId")
    listing_data: Optional[ListingData] = Field(None, alias="listingData")
    conversation_goal: Optional[str] = Field(None, alias="conversationGoal", min_length=1)
    quick_question: Optional[str] = Field(None, alias="quickQuestion", min_length=1)
    messages: List[ContextMessage]

    def to_request(self) -> SuggestionRequest:
        listing = self.listing_data
        listing_id = listing.id if listing else None
        listing_url = (
            f"https://www.facebook.com/marketplace/item/{listing_id}"
            if listing_id and listing_id.isdigit()
            else None
        )
        listing_price = None
        if listing and listing.price is not None:
            listing_price = str(listing.price)

        return SuggestionRequest(
            thread_id=self.thread_id,
            fb_thread_id=self.thread_id,
            listing_id=listing_id,
            listing_title=listing.title if listing else None,
            listing_price=listing_price,
            listing_url=listing_url,
            conversation_goal=self.conversation_goal or "general",
            quick_question=self.quick_question,
            messages=[
                ThreadMessage(
                    sender_id=message.sender_type,
                    text=message.text,
                    timestamp=message.timestamp,
                    is_user=message.sender_type == "user",
                )
                for message in self.messages
            ],
        )


def _payload_kind(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return "request" if "fbThreadId" in value or "fb_thread_id" in value else "thread_context"
    if isinstance(value, SuggestionRequest):
        return "request"
    if isinstance(value, ThreadContextPayload):
        return "thread_context"
    return None


SuggestionPayload = Annotated[
    Union[
        Annotated[SuggestionRequest, Tag("request")],
        Annotated[ThreadContextPayload, Tag("thread_context")],
    ],
    Discriminator(_payload_kind),
]

suggestion_payload_adapter: TypeAdapter = TypeAdapter(SuggestionPayload)


def normalize_payload(payload: Any) -> SuggestionRequest:
    """
    Validate either request shape and return the canonical request.

    Raises:
        pydantic.ValidationError: If the body matches neither shape
    """
    parsed = suggestion_payload_adapter.validate_python(payload)
    if isinstance(parsed, ThreadContextPayload):
        return parsed.to_request()
    return parsed


class Suggestion(WireModel):
    """Validated model output"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    suggested_message: str = Field(..., alias="suggestedMessage", max_length=200, description="Reply text (max 200 chars)")
    intent_score: float = Field(..., alias="intentScore", ge=0.0, le=1.0, description="Buyer intent in [0, 1]")
    reasoning: str = Field(..., description="Why this reply was suggested")
    next_action: NextAction = Field(..., alias="nextAction", description="Recommended next step")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SuggestionJobResult(WireModel):
    """Job state as stored, polled and returned"""

    job_id: str = Field(..., alias="jobId", description="Job ID, scoped to the account")
    status: JobStatus = Field(..., description="pending, processing, completed or failed")
    suggestion: Optional[Suggestion] = Field(None, description="Present once completed")
    error: Optional[str] = Field(None, description="Present once failed")
    updated_at: str = Field(default_factory=utc_now_iso, alias="updatedAt", description="ISO-8601 UTC")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class SuggestionJobPayload(WireModel):
    """Job description handed from the request handler to the worker"""

    job_id: str = Field(..., alias="jobId")
    request_id: str = Field(..., alias="requestId")
    account_id: str = Field(..., alias="accountId")
    user_id: str = Field(..., alias="userId")
    plan: str = Field("free", description="Plan tier resolved at admission")
    request: SuggestionRequest
    enqueued_at: str = Field(default_factory=utc_now_iso, alias="enqueuedAt")
