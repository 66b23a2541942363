"""Custom exception classes for the peer endpoint."""


class PeerLinkError(Exception):
    """
    Base exception class for all peer endpoint errors.
    """
    pass


class SignalingUnavailableError(PeerLinkError):
    """
    Raised when the relay cannot be reached or the relay connection dropped.
    """

    def __init__(self, message: str, close_code: int = None, reason: str = None):
        super().__init__(message)
        self.close_code = close_code
        self.reason = reason


class NegotiationMalformedError(PeerLinkError):
    """
    Raised when a signaling payload cannot be parsed. Never fatal: the payload is dropped.
    """
    pass


class NoCaptureSourceError(PeerLinkError):
    """
    Raised when the initiator starts sharing without an available capture source.
    """
    pass


class TransferError(PeerLinkError):
    """
    Raised when a file transfer cannot be started or sent.
    """
    pass


class TransferSizeMismatchError(TransferError):
    """
    Raised when a completed transfer's byte count differs from its declared size.
    """

    def __init__(self, name: str, declared: int, received: int):
        super().__init__(
            f"Transfer '{name}' declared {declared} bytes but received {received}"
        )
        self.name = name
        self.declared = declared
        self.received = received
