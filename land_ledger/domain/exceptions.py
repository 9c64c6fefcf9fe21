"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidCadenceConfig(DomainException):
    """Recurrence anchor is out of range for its cadence"""

    pass


class ConcurrentGenerationConflict(DomainException):
    """Template pointer moved between read and update (another run advanced it)"""

    def __init__(self, template_id, expected_next):
        super().__init__(f"Template {template_id} no longer points at {expected_next}")
        self.template_id = template_id
        self.expected_next = expected_next


class RoundingReconciliationFailure(DomainException):
    """Planned installments do not sum to the financed amount"""

    def __init__(self, expected_cents: int, actual_cents: int):
        super().__init__(
            f"Installment plan sums to {actual_cents}, expected {expected_cents}"
        )
        self.expected_cents = expected_cents
        self.actual_cents = actual_cents


class InvalidPlanTerms(DomainException):
    """Financing terms cannot produce a valid installment schedule"""

    pass


class InvalidPaymentAmount(DomainException):
    """Payment amount must be strictly positive"""

    pass


class CrossSaleViolation(DomainException):
    """Installment does not belong to the sale the payment targets"""

    def __init__(self, sale_id, installment_id):
        super().__init__(f"Installment {installment_id} does not belong to sale {sale_id}")
        self.sale_id = sale_id
        self.installment_id = installment_id


class SaleNotFound(DomainException):
    """Sale does not exist"""

    pass


class InstallmentNotFound(DomainException):
    """Installment does not exist"""

    pass


class TemplateNotFound(DomainException):
    """Recurring template does not exist"""

    pass
