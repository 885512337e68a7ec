from mail_dispatcher.models.message import NormalizedMessage, decode_mime_header, header_address
from mail_dispatcher.models.records import Account, DispatchOutcome, ForwardTarget, OutcomeStatus

__all__ = [
    "Account",
    "DispatchOutcome",
    "ForwardTarget",
    "NormalizedMessage",
    "OutcomeStatus",
    "decode_mime_header",
    "header_address",
]
