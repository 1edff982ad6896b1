"""Shared FastAPI dependencies: the notifier and the single registration workflow."""
from __future__ import annotations

from typing import Optional

from quizreg.models.base import async_session_factory
from quizreg.services.notifications import Notifier, build_notifier
from quizreg.services.workflow import RegistrationWorkflow

_notifier: Optional[Notifier] = None
_workflow: Optional[RegistrationWorkflow] = None


def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier


def get_workflow() -> RegistrationWorkflow:
    """One workflow per process so every request shares the per-event locks."""
    global _workflow
    if _workflow is None:
        _workflow = RegistrationWorkflow(async_session_factory, get_notifier())
    return _workflow
