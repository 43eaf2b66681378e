class CategorizerError(Exception):
    detail: str = "Classifier error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.detail
        super().__init__(self.detail)


class TransactionValidationError(CategorizerError, ValueError):
    detail = "Invalid transaction"
