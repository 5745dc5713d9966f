# Error audit module
from loanbook.modules.errors.models import ErrorLog, ErrorSeverity

__all__ = ["ErrorLog", "ErrorSeverity"]
