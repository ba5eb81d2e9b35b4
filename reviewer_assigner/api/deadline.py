import time
from typing import Optional

from .errors import OperationCancelled
from .repositories import limit_statement_time


class Deadline:
    """
    Срок выполнения операции. Проверяется перед каждым обращением к хранилищу;
    на PostgreSQL оставшееся время становится statement_timeout транзакции,
    так что уже начатый запрос тоже обрывается по сроку
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self.expires_at = None if timeout is None else time.monotonic() + timeout

    @property
    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    def check(self, step: str = ''):
        if self.expired:
            message = f"operation deadline of {self.timeout}s exceeded"
            if step:
                message = f"{message} before {step}"
            raise OperationCancelled(message)

        remaining = self.remaining
        if remaining is not None:
            limit_statement_time(remaining)
