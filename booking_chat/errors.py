class CatalogError(Exception):
    """Raised by a catalog gateway when a read or a booking submission fails."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation
