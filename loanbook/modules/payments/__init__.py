# Payments module
from loanbook.modules.payments.models import Payment, PaymentStatus

__all__ = ["Payment", "PaymentStatus"]
