class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class UnknownUnitError(ValidationError):
    def __init__(self, unit: object):
        self.unit = unit
        super().__init__(f"Unknown unit: {unit!r}")


class InvalidChangeAmountError(ValidationError):
    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(f"Change amount must be a non-zero finite number. Received: {amount!r}")


class InsufficientStockError(AppError):
    def __init__(self, ingredient_id: str, available: float, requested: float):
        self.ingredient_id = ingredient_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {ingredient_id}. Available: {available:g}, requested change: {requested:g}"
        )


class PartialBatchFailureError(AppError):
    def __init__(self, missing_ingredient_ids: list[str]):
        self.missing_ingredient_ids = list(missing_ingredient_ids)
        super().__init__(
            "Batch rejected, missing ingredients: " + ", ".join(self.missing_ingredient_ids)
        )


class AiUnavailableError(AppError):
    pass


class DuplicatePoNumberError(ValidationError):
    def __init__(self, po_number: str):
        self.po_number = po_number
        super().__init__(f"Purchase order number already in use: {po_number}")
