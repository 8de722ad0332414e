from collections.abc import Sequence


class RegistryError(Exception):
    """Base class for errors raised by the catalog and asset services."""

    message = "Registry error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class MissingFieldsError(RegistryError):
    def __init__(self, fields: Sequence[str], prefix: str = "Missing fields"):
        self.fields = list(fields)
        super().__init__(f"{prefix}: {', '.join(self.fields)}")


class AssetValidationError(RegistryError):
    def __init__(self, fields: Sequence[str]):
        self.fields = list(fields)
        super().__init__(f"Invalid asset fields: {', '.join(self.fields)}")


class RecordNotFoundError(RegistryError):
    message = "Record not found"


class DuplicateKeyError(RegistryError):
    message = "Duplicate key"


class StoreInitializationError(RegistryError):
    message = "Store initialization failed"


class StoreIOError(RegistryError):
    message = "Store request failed"
