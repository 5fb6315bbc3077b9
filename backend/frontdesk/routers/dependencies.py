"""
Console lookup dependencies.
"""

from fastapi import Depends, HTTPException, status
from fastapi.requests import HTTPConnection

from ..services.front_desk import FrontDeskConsole


async def get_console(connection: HTTPConnection) -> FrontDeskConsole:
    """Get the console started by the application lifespan."""
    console = getattr(connection.app.state, "console", None)
    if console is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Console is not running"
        )
    return console


async def require_scope(console: FrontDeskConsole = Depends(get_console)) -> FrontDeskConsole:
    """Console with a doctor and day selected."""
    if console.synchronizer.scope is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Select a doctor and day first"
        )
    return console
