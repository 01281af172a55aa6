from uservault.livewire.extraction import (
    CSRF_EXTRACTORS,
    ComponentSnapshot,
    FormPage,
    extract_form_page,
    find_csrf_token,
    find_snapshot,
)
from uservault.livewire.outcomes import (
    PENDING_EMAIL_VERIFICATION,
    FormOutcome,
    SessionExpiredOutcome,
    Success,
    Unrecognized,
    ValidationFailed,
)
from uservault.livewire.bridge import LivewireBridge, first_error, interpret_response
from uservault.livewire.flows import EmailTokenFlow, FlowState, PasswordResetFlow, RegistrationFlow

__all__ = [
    "CSRF_EXTRACTORS",
    "ComponentSnapshot",
    "FormPage",
    "extract_form_page",
    "find_csrf_token",
    "find_snapshot",
    "PENDING_EMAIL_VERIFICATION",
    "FormOutcome",
    "SessionExpiredOutcome",
    "Success",
    "Unrecognized",
    "ValidationFailed",
    "LivewireBridge",
    "first_error",
    "interpret_response",
    "EmailTokenFlow",
    "FlowState",
    "PasswordResetFlow",
    "RegistrationFlow",
]
