from __future__ import annotations


class ValidationError(ValueError):
    """Entrada rechazada antes de modificar cualquier dato."""


class PaymentValidationError(ValidationError):
    pass


class SaleValidationError(ValidationError):
    pass


class SupplyValidationError(ValidationError):
    """Proveedor, entrega, producción o reposición inválidos."""


class NotFoundError(ValidationError):
    pass


class SchemaError(ValidationError):
    """JSON persistido o importado con una forma inesperada."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class BackupFormatError(ValidationError):
    pass
