"""
Custom Exceptions for ChargeLedger Billing Engine
"""

class BillingSystemException(Exception):
    """Base exception for all billing engine errors"""
    error_code = "BILLING_ERROR"
    retryable = False

    def __init__(self, message: str, error_code: str = None):
        self.message = message
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)

class ValidationException(BillingSystemException):
    """Raised when input validation fails"""
    error_code = "VALIDATION_ERROR"

class InvalidAmountException(ValidationException):
    """Raised when a payment amount is zero, negative or malformed"""
    error_code = "INVALID_AMOUNT"

class InvalidPlanParametersException(ValidationException):
    """Raised when EMI or rent plan parameters are inconsistent"""
    error_code = "INVALID_PLAN_PARAMETERS"

class CustomerNotFoundException(BillingSystemException):
    """Raised when referenced customer does not exist"""
    error_code = "CUSTOMER_NOT_FOUND"

class ObligationNotFoundException(BillingSystemException):
    """Raised when referenced EMI or rent obligation does not exist"""
    error_code = "OBLIGATION_NOT_FOUND"

class AuthorizationException(BillingSystemException):
    """Raised when caller lacks permission for operation"""
    error_code = "UNAUTHORIZED"

class DatabaseException(BillingSystemException):
    """Raised when database operations fail"""
    error_code = "DATABASE_ERROR"

class ConcurrentModificationException(DatabaseException):
    """Raised when another writer changed the rows this operation read"""
    error_code = "CONCURRENT_MODIFICATION"
    retryable = True

class StoreUnavailableException(DatabaseException):
    """Raised when the record store times out or cannot be reached"""
    error_code = "STORE_UNAVAILABLE"
    retryable = True
