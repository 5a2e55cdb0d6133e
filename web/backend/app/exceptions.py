"""
Исключения движка купонов.

Все исключения описывают ожидаемые исходы (купон не найден, не подходит,
лимит исчерпан, некорректный ввод) и превращаются API-слоем в структурированный
JSON-ответ. Ошибки хранилища сюда не входят.
"""


class CouponError(Exception):
    """Базовое исключение для операций с купонами"""
    status_code = 400
    code = "COUPON_ERROR"
    default_message = "Coupon error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class CouponNotFoundError(CouponError):
    """Код не соответствует ни одному купону"""
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Invalid coupon code"


class CouponIneligibleError(CouponError):
    """Купон не подходит для клиента или записи"""
    status_code = 422
    code = "INELIGIBLE"
    default_message = "Coupon is not applicable"

    @property
    def reason(self) -> str:
        return self.message


class CouponCapExceededError(CouponError):
    """Лимит использований исчерпан в момент применения"""
    status_code = 409
    code = "CAP_EXCEEDED"
    default_message = "Coupon usage limit reached"


class CouponConflictError(CouponError):
    """Купон с таким кодом уже существует"""
    status_code = 409
    code = "CONFLICT"
    default_message = "Coupon code already exists"


class CouponValidationError(CouponError):
    """Некорректные входные данные"""
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid input data"
