# Identity & session module
from loanbook.modules.auth.models import Otp, OtpMethod, Session, SessionState

__all__ = ["Otp", "OtpMethod", "Session", "SessionState"]
