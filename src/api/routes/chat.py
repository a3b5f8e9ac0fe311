from fastapi import APIRouter, Depends, HTTPException, Query

from api.auth import verify_api_key
from api.dependencies import ChatServiceDep, SettingsDep, StreamManagerDep
from api.models.chat import SendMessageRequest
from api.streaming import EventStreamResponse, event_stream_response
from core.exceptions import ValidationError
from pubsub.channels import MessageEvent, user_topic

router = APIRouter()

CHAT_HEARTBEAT_COMMENT = "ping"


@router.post("/send", response_model=MessageEvent, dependencies=[Depends(verify_api_key)])
def send_message(body: SendMessageRequest, chat: ChatServiceDep) -> MessageEvent:
    """Store a chat message and push it to the receiver's open streams."""
    try:
        return chat.send_message(
            sender_id=body.sender_id,
            receiver_id=body.receiver_id,
            content=body.content,
            attachment=body.attachment,
            attachment_type=body.attachment_type,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message) from e


@router.get(
    "/thread", response_model=list[MessageEvent], dependencies=[Depends(verify_api_key)]
)
def get_thread(
    chat: ChatServiceDep,
    user_id: str | None = Query(default=None, alias="userId"),
    peer_id: str | None = Query(default=None, alias="peerId"),
) -> list[MessageEvent]:
    try:
        return chat.get_thread(user_id or "", peer_id or "")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message) from e


@router.get("/stream")
async def chat_stream(
    streams: StreamManagerDep,
    settings: SettingsDep,
    user_id: str | None = Query(default=None, alias="userId"),
) -> EventStreamResponse:
    """Live inbox for one user; every tab gets its own channel."""
    if not user_id:
        raise HTTPException(status_code=400, detail="userId required")

    channel = streams.open(
        user_topic(user_id),
        heartbeat_interval=settings.stream.chat_heartbeat_seconds,
        heartbeat_comment=CHAT_HEARTBEAT_COMMENT,
    )
    return event_stream_response(channel)
