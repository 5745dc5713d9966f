# Loans module
from loanbook.modules.loans.models import Loan, LoanStatus, ApprovalParty

__all__ = ["Loan", "LoanStatus", "ApprovalParty"]
