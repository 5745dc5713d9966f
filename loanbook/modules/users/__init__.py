# Users module
from loanbook.modules.users.models import User

__all__ = ["User"]
