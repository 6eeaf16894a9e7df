"""Messaging endpoints for the Shoptalk API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Path, status

from shoptalk.errors import MessagingError
from shoptalk.schemas import (
    ConversationListResponse,
    ConversationLookupResponse,
    ConversationOut,
    MarkReadResponse,
    MessageOut,
    ParticipantOut,
    SendMessageRequest,
    SendMessageResponse,
    ThreadResponse,
    UnreadCountResponse,
)
from shoptalk.services import ConversationSummary, ThreadEntry
from shoptalk.services.messaging import MAX_CONVERSATION_ID

from ..dependencies import CurrentUserDep, MessagingServiceDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


def _http_error(err: MessagingError) -> HTTPException:
    """Translate a service error into the HTTP response it maps to."""
    if err.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.warning("Messaging request failed: %s", err.message)
    return HTTPException(status_code=err.status_code, detail=err.message)


def _message_out(entry: ThreadEntry) -> MessageOut:
    message = entry.message
    return MessageOut(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        text=message.text,
        created_at=message.created_at,
        read=message.read,
        sent_by_me=entry.sent_by_me,
    )


def _conversation_out(summary: ConversationSummary) -> ConversationOut:
    other = summary.other_user
    return ConversationOut(
        id=summary.conversation_id,
        participant=ParticipantOut(
            id=other.id,
            display_name=other.display_name,
            avatar_url=other.avatar_url,
        ),
        last_message_id=summary.last_message_id,
        last_message_text=summary.last_message_text,
        last_message_at=summary.last_message_at,
        unread_count=summary.unread_count,
    )


# Handlers are plain functions: the service blocks on the database and on the
# per-conversation lock, so FastAPI runs them in its threadpool.


@router.post("/send", status_code=status.HTTP_201_CREATED)
def send_message(
    payload: SendMessageRequest,
    current_user: CurrentUserDep,
    service: MessagingServiceDep,
) -> SendMessageResponse:
    """Send a message to another user, creating the conversation on first contact."""
    try:
        result = service.send(current_user.id, payload.recipient_id, payload.text)
    except MessagingError as err:
        raise _http_error(err) from err

    return SendMessageResponse(
        message=_message_out(ThreadEntry(message=result.message, sent_by_me=True)),
        conversation_id=result.conversation_id,
    )


@router.get("/thread/{other_user_id}")
def get_thread(
    other_user_id: str,
    current_user: CurrentUserDep,
    service: MessagingServiceDep,
) -> ThreadResponse:
    """Return the thread with another user, oldest message first."""
    try:
        thread = service.get_thread(current_user.id, other_user_id)
    except MessagingError as err:
        raise _http_error(err) from err

    return ThreadResponse(
        conversation_id=thread.conversation_id,
        messages=[_message_out(entry) for entry in thread.entries],
    )


@router.get("/conversation/{other_user_id}")
def find_conversation(
    other_user_id: str,
    current_user: CurrentUserDep,
    service: MessagingServiceDep,
) -> ConversationLookupResponse:
    """Look up the conversation id shared with another user."""
    try:
        conversation_id = service.find_conversation(current_user.id, other_user_id)
    except MessagingError as err:
        raise _http_error(err) from err
    return ConversationLookupResponse(conversation_id=conversation_id)


@router.put("/read/{conversation_id}")
def mark_read(
    current_user: CurrentUserDep,
    service: MessagingServiceDep,
    conversation_id: int = Path(..., gt=0, le=MAX_CONVERSATION_ID),
) -> MarkReadResponse:
    """Mark everything the other participant sent as read by the caller."""
    try:
        marked = service.mark_read(current_user.id, conversation_id)
    except MessagingError as err:
        raise _http_error(err) from err
    return MarkReadResponse(success=True, conversation_id=conversation_id, marked=marked)


@router.get("/conversations")
def list_conversations(
    current_user: CurrentUserDep,
    service: MessagingServiceDep,
) -> ConversationListResponse:
    """List the caller's conversations, most recently active first."""
    try:
        summaries = service.list_conversations(current_user.id)
    except MessagingError as err:
        raise _http_error(err) from err
    return ConversationListResponse(
        conversations=[_conversation_out(summary) for summary in summaries]
    )


@router.get("/unread/count")
def get_unread_count(
    current_user: CurrentUserDep,
    service: MessagingServiceDep,
) -> UnreadCountResponse:
    """Return the caller's unread messages summed over all conversations."""
    try:
        count = service.get_unread_total(current_user.id)
    except MessagingError as err:
        raise _http_error(err) from err
    return UnreadCountResponse(count=count)
