"""
Live transport updates for connected dashboards
"""

from datetime import datetime
from typing import Dict, List, Optional

from app.api.ws import WebSocketManager

class BroadcastService:
    """Pushes transport changes to the event's WebSocket room"""

    def __init__(self, websocket_manager: WebSocketManager):
        self.websocket_manager = websocket_manager

    async def broadcast_regeneration(self, event_id: int, result: Dict):
        """Announce that automatic groups were rebuilt"""
        message = {
            "type": "transport_regenerated",
            "direction": result.get("direction"),
            "groups_created": result.get("groups_created"),
            "unmatched_groups": result.get("unmatched_groups"),
            "timestamp": datetime.utcnow().isoformat(),
            "message": "Transport groups have been regenerated"
        }

        await self.websocket_manager.broadcast_to_event(event_id, message)

    async def broadcast_group_update(
        self,
        event_id: int,
        group: Dict,
        update_type: str = "transport_group_update"
    ):
        """Broadcast an individual group change"""

        message = {
            "type": update_type,
            "group": {
                "id": group["id"],
                "name": group["name"],
                "status": group["status"],
                "vehicle_id": group["vehicle_id"],
                "guests_picked_up": group["guests_picked_up"],
                "total_guests": group["total_guests"],
            },
            "timestamp": datetime.utcnow().isoformat()
        }

        await self.websocket_manager.broadcast_to_event(event_id, message)

    async def broadcast_vehicle_update(
        self,
        event_id: int,
        vehicle_id: int,
        status: str,
        group_ids: Optional[List[int]] = None
    ):
        message = {
            "type": "vehicle_update",
            "vehicle_id": vehicle_id,
            "status": status,
            "transport_group_ids": group_ids or [],
            "timestamp": datetime.utcnow().isoformat()
        }

        await self.websocket_manager.broadcast_to_event(event_id, message)
