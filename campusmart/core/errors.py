from fastapi import status


class DeliveryError(Exception):
    """Терминальная ошибка доставки сообщения. Повторять не нужно."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class BadRequestError(DeliveryError):
    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(DeliveryError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(DeliveryError):
    status_code = status.HTTP_404_NOT_FOUND
