class StakingError(Exception):
    pass


class ValidationError(StakingError):
    pass


class UnknownIdentityError(ValidationError):
    pass


class AmountOverflowError(ValidationError):
    pass


class InsufficientPoolBalance(StakingError):
    def __init__(self, required: int, available: int, message: str = "Pool balance cannot cover the amount"):
        super().__init__(f"{message}: required {required}, available {available}")
        self.required = required
        self.available = available


class TransferFailure(StakingError):
    pass


class ReentrantCallError(StakingError):
    pass
