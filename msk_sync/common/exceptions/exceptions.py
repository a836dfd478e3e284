# msk_sync/common/exceptions/exceptions.py
# =============================================================================
# Custom exceptions for msk-sync
# =============================================================================


class MskSyncException(Exception):
    """Base exception for msk-sync"""
    pass


class ConfigurationError(MskSyncException):
    """Raised when configuration values are invalid"""
    pass


class InputFileError(MskSyncException):
    """Raised when the fetch input file is missing or malformed"""
    pass


class InfrastructureError(MskSyncException):
    """Raised for infrastructure errors"""
    pass


class RecordStoreError(InfrastructureError):
    """Raised when the record store cannot be reached or a query fails"""
    pass


class BusConnectionError(InfrastructureError):
    """Raised when the bus transport cannot be reached"""
    pass


class PublishError(InfrastructureError):
    """Raised when an event could not be delivered to the bus"""

    def __init__(self, message: str, topic: str = "", dead_lettered: bool = False):
        super().__init__(message)
        self.topic = topic
        self.dead_lettered = dead_lettered


class SnapshotPersistenceError(InfrastructureError):
    """Raised when the snapshot file cannot be read or written"""
    pass


class InvalidRecordError(MskSyncException):
    """Raised when one input record does not match the record schema"""
    pass


class CodecError(MskSyncException):
    """Raised for wire encoding/decoding errors"""
    pass


class WireEncodeError(CodecError):
    """Raised when a record cannot be encoded to the wire schema"""
    pass


class WireDecodeError(CodecError):
    """Raised when a payload does not match the wire schema"""
    pass
