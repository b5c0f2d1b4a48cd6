"""
聊天API路由 - FastAPI表现层
"""
from fastapi import APIRouter, Depends, Path

from application.dto import ChatMessageDTO, MessageDeletedDTO
from application.services.chat_service import ChatApplicationService
from core.response import ListData, Response as ApiResponse, list_response, success_response
from domain.user.entity import User
from api.dependencies import get_chat_service, get_current_user

router = APIRouter(
    prefix="/chat",
    tags=["聊天"]
)


@router.get(
    "/{trip_id}/messages",
    summary="获取行程聊天记录",
    response_model=ApiResponse[ListData[ChatMessageDTO]],
    response_model_by_alias=True,
)
async def list_messages(
    trip_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: ChatApplicationService = Depends(get_chat_service),
):
    """
    获取行程最近的聊天消息（最多 CHAT_HISTORY_LIMIT 条，按时间正序）

    - 行程不存在：404
    - 非创建者/参与者：403
    """
    items = await service.list_messages(trip_id, current_user.id)
    return list_response(items)


@router.delete(
    "/{trip_id}/messages/{message_id}",
    summary="撤回消息",
    response_model=ApiResponse[MessageDeletedDTO],
    response_model_by_alias=True,
)
async def unsend_message(
    trip_id: int = Path(..., ge=1),
    message_id: int = Path(..., ge=1),
    current_user: User = Depends(get_current_user),
    service: ChatApplicationService = Depends(get_chat_service),
):
    """
    撤回自己发送的消息

    与实时通道共用鉴权与删除逻辑，但不会通知在线连接。
    """
    deleted_id = await service.retract(trip_id, message_id, current_user.id)
    return success_response(
        data=MessageDeletedDTO(message_id=deleted_id, trip_id=trip_id),
        message="Message deleted",
    )
