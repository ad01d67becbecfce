"""FastAPI plumbing shared by the routers."""

from fastapi import Request


def get_components(request: Request):
    """Dependency returning the ``Components`` the app was built with."""
    return request.app.state.components
