from fastapi import Request

from watchparty.services.coordinator import RoomCoordinator
from watchparty.services.media import MediaStore


def get_coordinator(request: Request) -> RoomCoordinator:
    return request.app.state.coordinator


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media_store
