"""
Google Auth Router - sign-in redirect, callback, sign-out and profile.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse

from call_analyzer.core.errors import AnalysisError
from call_analyzer.models.session import AuthStatusResponse
from call_analyzer.routers.analysis import get_controller
from call_analyzer.services.controller import AnalysisController

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/google", tags=["auth"])


def _status(controller: AnalysisController) -> AuthStatusResponse:
    auth = controller.auth
    return AuthStatusResponse(
        ready=auth.ready,
        is_signed_in=auth.is_signed_in,
        profile=auth.current_profile,
    )


@router.get("/login")
async def login(
    redirect: bool = True,
    controller: AnalysisController = Depends(get_controller),
):
    """Send the user to the Google consent screen (or return its URL)."""
    try:
        url = controller.auth.begin_sign_in()
    except AnalysisError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    if redirect:
        return RedirectResponse(url)
    return {"authorizationUrl": url}


@router.get("/callback", response_model=AuthStatusResponse)
async def callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    state: Optional[str] = None,
    controller: AnalysisController = Depends(get_controller),
):
    """
    Redirect target of the consent screen.

    Sign-in problems never fail the request, including a callback whose
    `state` was not issued by /login; the response reports the user as
    signed out.
    """
    await controller.auth.handle_callback(code, error, state)
    return _status(controller)


@router.post("/logout", response_model=AuthStatusResponse)
async def logout(controller: AnalysisController = Depends(get_controller)):
    await controller.auth.sign_out()
    return _status(controller)


@router.get("/profile", response_model=AuthStatusResponse)
async def profile(controller: AnalysisController = Depends(get_controller)):
    return _status(controller)
