"""
Input Validation Utilities
Provides validation functions for billing engine inputs
"""

import re
from decimal import Decimal, InvalidOperation
from datetime import date
from enum import Enum
from typing import Type, TypeVar, Union

from utils.exceptions import (
    ValidationException, InvalidAmountException, InvalidPlanParametersException
)

E = TypeVar('E', bound=Enum)

class BillingValidator:
    """Validation utilities for billing operations"""

    @staticmethod
    def to_amount(value: Union[Decimal, int, str, float]) -> Decimal:
        """Coerce a caller-supplied amount to Decimal without float noise"""
        if isinstance(value, bool) or value is None:
            raise InvalidAmountException("Amount is required")
        try:
            return value if isinstance(value, Decimal) else Decimal(str(value))
        except InvalidOperation:
            raise InvalidAmountException(f"Amount '{value}' is not a number")

    @staticmethod
    def validate_amount(amount: Decimal) -> Decimal:
        """Validate a payment amount and return it as Decimal"""
        amount = BillingValidator.to_amount(amount)

        if not amount.is_finite():
            raise InvalidAmountException("Amount must be a finite number")

        if amount <= 0:
            raise InvalidAmountException("Amount must be greater than zero")

        # Check decimal places (max 2 for currency)
        if amount.as_tuple().exponent < -2:
            raise InvalidAmountException("Amount cannot have more than 2 decimal places")

        return amount

    @staticmethod
    def validate_emi_plan(total_amount: Decimal, down_payment: Decimal, emi_count: int):
        """Validate EMI plan parameters"""
        try:
            total_amount = BillingValidator.to_amount(total_amount)
            down_payment = BillingValidator.to_amount(down_payment)
        except InvalidAmountException as e:
            raise InvalidPlanParametersException(e.message)

        if not isinstance(emi_count, int) or isinstance(emi_count, bool) or emi_count < 1:
            raise InvalidPlanParametersException("EMI count must be at least 1")

        if down_payment <= 0:
            raise InvalidPlanParametersException("Down payment must be greater than zero")

        if down_payment >= total_amount:
            raise InvalidPlanParametersException("Down payment must be less than the total amount")

        for value in (total_amount, down_payment):
            if value.as_tuple().exponent < -2:
                raise InvalidPlanParametersException("Plan amounts cannot have more than 2 decimal places")

        return total_amount, down_payment

    @staticmethod
    def validate_monthly_rent(monthly_rent: Decimal) -> Decimal:
        """Validate monthly rent amount"""
        try:
            monthly_rent = BillingValidator.to_amount(monthly_rent)
        except InvalidAmountException as e:
            raise InvalidPlanParametersException(e.message)

        if monthly_rent <= 0:
            raise InvalidPlanParametersException("Monthly rent must be greater than zero")

        return monthly_rent

    @staticmethod
    def validate_date(value: date, field_name: str = "Date") -> date:
        if not isinstance(value, date):
            raise ValidationException(f"{field_name} must be a date")
        return value

    @staticmethod
    def parse_choice(value: Union[str, E], enum_cls: Type[E], field_name: str) -> E:
        """Accept an enum member or its string value"""
        if isinstance(value, enum_cls):
            return value
        try:
            return enum_cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(member.value for member in enum_cls)
            raise ValidationException(f"Invalid {field_name} '{value}'. Allowed values: {allowed}")

    @staticmethod
    def validate_reference_number(reference: str) -> bool:
        """Validate payment reference number"""
        if not isinstance(reference, str):
            raise ValidationException("Reference number must be a string")

        if len(reference) < 4 or len(reference) > 40:
            raise ValidationException("Reference number must be 4-40 characters")

        # Alphanumeric with some special characters allowed
        if not re.match(r'^[A-Za-z0-9\-_/]+$', reference):
            raise ValidationException("Reference number can only contain letters, numbers, hyphens, slashes and underscores")

        return True
