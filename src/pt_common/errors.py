"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Ledger / Transfer
  3xxx: Challenge
  4xxx: IB / Commission
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409)


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid username or password", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Refresh token is invalid or expired", 401)


class InvalidReferralCodeError(AppError):
    def __init__(self, code: str) -> None:
        super().__init__(1006, f"Unknown referral code: {code}", 422)


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1007, "Admin role required", 403)


# --- 2xxx: Ledger / Transfer ---

class InsufficientFundsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient funds: required {required} cents, available {available} cents",
            422,
        )
        self.required = required
        self.available = available


class EntityNotFoundError(AppError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(2002, f"{entity} not found: {entity_id}", 404)


class InvalidStateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2003, f"Invalid state: {detail}", 409)


class InvalidTargetError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2004, f"Invalid transfer target: {detail}", 422)


class ConcurrentModificationError(AppError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(
            2005, f"{entity} {entity_id} was modified concurrently, retry", 409
        )


class InvalidAmountError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2006, f"Invalid amount: {detail}", 422)


class InvalidLeverageError(AppError):
    def __init__(self, leverage: int, allowed: list[int]) -> None:
        super().__init__(2007, f"Leverage 1:{leverage} not offered, choose one of {allowed}", 422)


# --- 3xxx: Challenge ---

class ChallengeExpiredError(AppError):
    def __init__(self, challenge_account_id: str) -> None:
        super().__init__(3001, f"Challenge expired: {challenge_account_id}", 422)


class ChallengeNotAvailableError(AppError):
    def __init__(self, challenge_id: str) -> None:
        super().__init__(3002, f"Challenge is not available: {challenge_id}", 422)


# --- 4xxx: IB / Commission ---

class NotAnIBError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(4001, f"User {user_id} is not an active IB", 403)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class UnavailableError(AppError):
    """Storage or infrastructure failure: distinct from business-rule errors."""

    def __init__(self, detail: str = "Service temporarily unavailable") -> None:
        super().__init__(9003, detail, 503)
