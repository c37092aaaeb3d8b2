from __future__ import annotations

from fastapi import APIRouter

from chat_core.api.deps import CurrentPrincipal, GatewayDep, UoWDep
from chat_core.api.v1.schemas.presence import OnlineUserResponse, PresenceResponse
from chat_core.services import user_service

router = APIRouter(prefix="/api/v1/chat/users", tags=["users"])


@router.get("/online", response_model=list[OnlineUserResponse])
async def list_online_users(
    principal: CurrentPrincipal,
    uow: UoWDep,
    gateway: GatewayDep,
) -> list[OnlineUserResponse]:
    """Users connected to this process right now, other than the caller."""
    users = await user_service.list_online_users(
        gateway.registry.online_user_ids(), principal.user_id, uow,
    )
    return [
        OnlineUserResponse(user_id=u.id, display_name=u.display_name, avatar_url=u.avatar_url)
        for u in users
    ]


@router.get("/{user_id}/presence", response_model=PresenceResponse)
async def get_presence(
    user_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> PresenceResponse:
    presence = await user_service.get_presence(user_id, uow)
    return PresenceResponse(
        user_id=presence.user_id,
        is_online=presence.is_online,
        last_seen_at=presence.last_seen_at,
    )
