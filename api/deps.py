from fastapi import Request

from services.eligibility import EligibilityGate
from services.notifications import LoggingNotifier, Notifier


def get_eligibility_gate(request: Request) -> EligibilityGate:
    """The gate built once at start-up; its mode never changes while the app runs."""
    return request.app.state.eligibility_gate


def get_notifiers(request: Request) -> list[Notifier]:
    """Notifiers configured at start-up. An empty list means notifications are switched off."""
    notifiers = getattr(request.app.state, "notifiers", None)
    return [LoggingNotifier()] if notifiers is None else notifiers
