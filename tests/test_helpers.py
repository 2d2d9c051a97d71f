import unittest
from unittest import mock
from datetime import date, datetime
from decimal import Decimal

from utils.exceptions import ValidationException
from utils.formatters import format_currency, status_badge, to_rows
from utils.helpers import NumberUtils, DateUtils, StringUtils
from utils.settings import BillingSettings
from core.models.entities import PaymentStatus, EMIProgress


class NumberUtilsTests(unittest.TestCase):

    def test_round_currency_is_half_up(self):
        self.assertEqual(NumberUtils.round_currency(Decimal('2.345')), Decimal('2.35'))
        self.assertEqual(NumberUtils.round_currency(Decimal('2.344')), Decimal('2.34'))

    def test_even_split(self):
        self.assertEqual(NumberUtils.split_installments(Decimal('50000'), 10), [Decimal('5000.00')] * 10)

    def test_last_installment_takes_remainder(self):
        parts = NumberUtils.split_installments(Decimal('10000.00'), 3)
        self.assertEqual(parts[:2], [Decimal('3333.33'), Decimal('3333.33')])
        self.assertEqual(parts[-1], Decimal('3333.34'))
        self.assertEqual(sum(parts), Decimal('10000.00'))

    def test_round_percentage(self):
        self.assertEqual(NumberUtils.round_percentage(1, 8), 13)  # 12.5
        self.assertEqual(NumberUtils.round_percentage(1, 3), 33)
        self.assertEqual(NumberUtils.round_percentage(0, 0), 0)


class DateUtilsTests(unittest.TestCase):

    def test_add_months_clamps_to_month_end(self):
        self.assertEqual(DateUtils.add_months(date(2024, 1, 31), 1), date(2024, 2, 29))
        self.assertEqual(DateUtils.add_months(date(2024, 1, 31), 2), date(2024, 3, 31))

    def test_month_helpers(self):
        self.assertEqual(DateUtils.first_of_month(date(2024, 2, 17)), date(2024, 2, 1))
        self.assertEqual(DateUtils.days_in_month(date(2023, 2, 10)), 28)

    def test_as_date(self):
        self.assertEqual(DateUtils.as_date(datetime(2024, 5, 1, 13, 30)), date(2024, 5, 1))
        self.assertIsNone(DateUtils.as_date(None))


class StringUtilsTests(unittest.TestCase):

    def test_reference_numbers_are_prefixed_and_unique(self):
        first = StringUtils.generate_reference_number()
        second = StringUtils.generate_reference_number()
        self.assertTrue(first.startswith("PAY"))
        self.assertNotEqual(first, second)

    def test_clean_string(self):
        self.assertEqual(StringUtils.clean_string("  late   fee  "), "late fee")


class FormatterTests(unittest.TestCase):

    def test_format_currency(self):
        self.assertEqual(format_currency(Decimal('12345.5')), "₹12,345.50")
        self.assertEqual(format_currency(None), "₹0.00")

    def test_status_badge_accepts_enums(self):
        self.assertEqual(status_badge(PaymentStatus.PARTIAL), "Partially Paid")
        self.assertEqual(status_badge("monthly_rent"), "Monthly Rent")

    def test_to_rows(self):
        rows = to_rows([EMIProgress(paid=2, total=4, percentage=50)])
        self.assertEqual(rows, [{'paid': 2, 'total': 4, 'percentage': 50}])


class BillingSettingsTests(unittest.TestCase):

    def test_defaults(self):
        settings = BillingSettings()
        self.assertEqual(settings.rent_due_day, 5)
        self.assertEqual(settings.overdue_grace_days, 0)
        self.assertTrue(settings.prorate_first_rent)

    def test_from_env(self):
        env = {
            'BILLING_RENT_DUE_DAY': '10',
            'BILLING_OVERDUE_GRACE_DAYS': '3',
            'BILLING_PRORATE_FIRST_RENT': 'false',
            'BILLING_LOG_LEVEL': 'debug',
        }
        with mock.patch.dict('os.environ', env):
            settings = BillingSettings.from_env()
        self.assertEqual(settings.rent_due_day, 10)
        self.assertEqual(settings.overdue_grace_days, 3)
        self.assertFalse(settings.prorate_first_rent)
        self.assertEqual(settings.log_level, 'DEBUG')

    def test_rejects_out_of_range_values(self):
        with self.assertRaises(ValidationException):
            BillingSettings(rent_due_day=31)
        with self.assertRaises(ValidationException):
            BillingSettings(overdue_grace_days=-1)


if __name__ == '__main__':
    unittest.main()
