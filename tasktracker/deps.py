from fastapi import Request

from tasktracker.realtime.notifier import NotificationRouter
from tasktracker.utils.files import BlobStore


def get_notifier(request: Request) -> NotificationRouter:
    """FastAPI dependency returning the process-wide notification router.

    Usage in route functions:
        notifier: NotificationRouter = Depends(get_notifier)
    """
    return request.app.state.notifier


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store
