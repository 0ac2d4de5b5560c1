from fastapi import Request

from medicare.repositories import Store


def get_store(request: Request) -> Store:
    """Repositories attached to the app at startup (overridden in tests)."""
    return request.app.state.store
