import unittest
from datetime import date
from decimal import Decimal

from core.models.entities import CustomerStatus, PaymentStatus
from core.services.audit_service import AuditService
from utils.exceptions import CustomerNotFoundException, InvalidPlanParametersException
from utils.settings import BillingSettings

from fakes import build_engine, add_emi_customer, add_rent_customer, add_purchase_customer


class ScheduleEmiTests(unittest.TestCase):

    def setUp(self):
        self.engine = build_engine()
        self.customer_id = add_emi_customer(self.engine)

    def test_ten_equal_installments_one_month_apart(self):
        created = self.engine.scheduling.schedule_emi(
            self.customer_id, Decimal("60000"), Decimal("10000"), 10, date(2024, 1, 10))

        emis = self.engine.emis.find_by_customer(self.customer_id)
        self.assertEqual(created, 10)
        self.assertEqual([e.emi_number for e in emis], list(range(1, 11)))
        self.assertTrue(all(e.amount == Decimal("5000") for e in emis))
        self.assertEqual(emis[0].due_date, date(2024, 2, 10))
        self.assertEqual(emis[-1].due_date, date(2024, 11, 10))
        self.assertTrue(all(e.payment_status == PaymentStatus.DUE for e in emis))
        self.assertTrue(all(e.paid_amount + e.remaining_amount == e.amount for e in emis))

    def test_sets_next_due_date_and_audits(self):
        self.engine.scheduling.schedule_emi(
            self.customer_id, Decimal("60000"), Decimal("10000"), 10, date(2024, 1, 10))

        customer = self.engine.customers.find_customer_by_id(self.customer_id)
        self.assertEqual(customer.next_due_date, date(2024, 2, 10))
        self.assertIn(AuditService.SCHEDULE_EMI, self.engine.audit_repo.actions())

    def test_scheduling_twice_creates_nothing_new(self):
        args = (self.customer_id, Decimal("60000"), Decimal("10000"), 10, date(2024, 1, 10))
        self.engine.scheduling.schedule_emi(*args)
        second = self.engine.scheduling.schedule_emi(*args)

        emis = self.engine.emis.find_by_customer(self.customer_id)
        self.assertEqual(second, 0)
        self.assertEqual(len(emis), 10)
        self.assertEqual(len({e.emi_number for e in emis}), 10)

    def test_installments_sum_to_the_loan(self):
        self.engine.scheduling.schedule_emi(
            self.customer_id, Decimal("10000"), Decimal("1"), 7, date(2024, 1, 31))

        emis = self.engine.emis.find_by_customer(self.customer_id)
        self.assertEqual(sum(e.amount for e in emis), Decimal("9999"))
        self.assertEqual(emis[0].due_date, date(2024, 2, 29))
        self.assertEqual(emis[1].due_date, date(2024, 3, 31))

    def test_rejects_inconsistent_plans(self):
        with self.assertRaises(InvalidPlanParametersException):
            self.engine.scheduling.schedule_emi(
                self.customer_id, Decimal("5000"), Decimal("6000"), 10, date(2024, 1, 10))
        with self.assertRaises(InvalidPlanParametersException):
            self.engine.scheduling.schedule_emi(
                self.customer_id, Decimal("1.05"), Decimal("1"), 10, date(2024, 1, 10))
        self.assertEqual(self.engine.emis.find_by_customer(self.customer_id), [])

    def test_rejects_rent_customers_and_unknown_ids(self):
        rent_customer = add_rent_customer(self.engine)
        with self.assertRaises(InvalidPlanParametersException):
            self.engine.scheduling.schedule_emi(
                rent_customer, Decimal("60000"), Decimal("10000"), 10, date(2024, 1, 10))
        with self.assertRaises(CustomerNotFoundException):
            self.engine.scheduling.schedule_emi(
                999, Decimal("60000"), Decimal("10000"), 10, date(2024, 1, 10))


class ScheduleRentTests(unittest.TestCase):

    def setUp(self):
        self.engine = build_engine()

    def test_first_of_month_start_bills_full_month(self):
        customer_id = add_rent_customer(self.engine)
        rent = self.engine.scheduling.schedule_rent(customer_id, Decimal("3000"), date(2024, 1, 1))

        self.assertEqual(rent.rent_month, date(2024, 1, 1))
        self.assertEqual(rent.amount, Decimal("3000"))
        self.assertEqual(rent.due_date, date(2024, 1, 5))
        self.assertFalse(rent.is_prorated)
        self.assertEqual(self.engine.customers.find_customer_by_id(customer_id).next_due_date, date(2024, 1, 5))

    def test_mid_month_start_is_prorated(self):
        customer_id = add_rent_customer(self.engine, join_date=date(2024, 4, 21))
        rent = self.engine.scheduling.schedule_rent(customer_id, Decimal("3000"), date(2024, 4, 21))

        # 10 of 30 days
        self.assertEqual(rent.amount, Decimal("1000.00"))
        self.assertEqual(rent.prorated_days, 10)
        self.assertTrue(rent.is_prorated)
        self.assertEqual(rent.due_date, date(2024, 4, 26))

    def test_proration_can_be_disabled(self):
        engine = build_engine(BillingSettings(prorate_first_rent=False))
        customer_id = add_rent_customer(engine, join_date=date(2024, 4, 21))
        rent = engine.scheduling.schedule_rent(customer_id, Decimal("3000"), date(2024, 4, 21))

        self.assertEqual(rent.amount, Decimal("3000"))
        self.assertEqual(rent.due_date, date(2024, 4, 5))

    def test_next_call_covers_the_following_month(self):
        customer_id = add_rent_customer(self.engine)
        self.engine.scheduling.schedule_rent(customer_id, Decimal("3000"), date(2024, 1, 1))
        second = self.engine.scheduling.schedule_rent(customer_id, Decimal("3000"), date(2024, 1, 1))

        self.assertEqual(second.rent_month, date(2024, 2, 1))
        self.assertEqual(second.due_date, date(2024, 2, 5))
        self.assertFalse(second.is_prorated)


class GenerateMonthlyRentsTests(unittest.TestCase):

    def setUp(self):
        self.engine = build_engine()

    def test_creates_next_month_once(self):
        customer_id = add_rent_customer(self.engine)
        self.engine.scheduling.schedule_rent(customer_id, Decimal("3000"), date(2024, 1, 1))

        first = self.engine.scheduling.generate_monthly_rents(date(2024, 2, 2))
        second = self.engine.scheduling.generate_monthly_rents(date(2024, 2, 20))

        self.assertEqual(len(first['created']), 1)
        self.assertEqual(first['created'][0]['rent_month'], date(2024, 2, 1))
        self.assertEqual(second['created'], [])
        self.assertEqual(second['skipped'], [customer_id])
        months = sorted(r.rent_month for r in self.engine.rents.find_by_customer(customer_id))
        self.assertEqual(months, [date(2024, 1, 1), date(2024, 2, 1)])

    def test_customer_without_rent_starts_from_join_date(self):
        customer_id = add_rent_customer(self.engine, join_date=date(2024, 3, 16))
        result = self.engine.scheduling.generate_monthly_rents(date(2024, 3, 20))

        self.assertEqual(len(result['created']), 1)
        rent = self.engine.rents.find_by_customer(customer_id)[0]
        self.assertTrue(rent.is_prorated)
        self.assertEqual(rent.amount, Decimal("1548.39"))  # 3000 / 31 * 16

    def test_future_joiners_and_inactive_customers_are_left_alone(self):
        future = add_rent_customer(self.engine, join_date=date(2024, 6, 1))
        add_rent_customer(self.engine, name="Gone", status=CustomerStatus.INACTIVE)

        result = self.engine.scheduling.generate_monthly_rents(date(2024, 5, 10))

        self.assertEqual(result['total_customers'], 1)
        self.assertEqual(result['skipped'], [future])
        self.assertEqual(self.engine.rents.rows, {})

    def test_one_bad_customer_does_not_stop_the_run(self):
        good = add_rent_customer(self.engine, name="Good")
        bad = add_rent_customer(self.engine, name="Bad", monthly_rent="0")

        result = self.engine.scheduling.generate_monthly_rents(date(2024, 1, 10))

        self.assertEqual([c['customer_id'] for c in result['created']], [good])
        self.assertEqual(result['errors'][0]['customer_id'], bad)
        self.assertEqual(result['errors'][0]['error_code'], "INVALID_PLAN_PARAMETERS")

    def test_emi_customers_are_ignored(self):
        add_emi_customer(self.engine)
        result = self.engine.scheduling.generate_monthly_rents(date(2024, 5, 10))
        self.assertEqual(result['total_customers'], 0)


class ScheduleForCustomerTests(unittest.TestCase):

    def setUp(self):
        self.engine = build_engine()

    def test_emi_plan(self):
        customer_id = add_emi_customer(self.engine)
        customer = self.engine.customers.find_customer_by_id(customer_id)

        result = self.engine.scheduling.schedule_for_customer(customer, date(2024, 1, 10))

        self.assertEqual(result, {'payment_type': 'emi', 'created': 10})

    def test_rent_plan_catches_up_to_current_month(self):
        customer_id = add_rent_customer(self.engine, join_date=date(2024, 1, 1))
        customer = self.engine.customers.find_customer_by_id(customer_id)

        result = self.engine.scheduling.schedule_for_customer(customer, date(2024, 3, 12))

        self.assertEqual(result['created'], 3)
        months = [r.rent_month for r in self.engine.rents.find_by_customer(customer_id)]
        self.assertEqual(months, [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)])

    def test_purchase_plan_has_no_obligations(self):
        customer_id = add_purchase_customer(self.engine)
        customer = self.engine.customers.find_customer_by_id(customer_id)

        result = self.engine.scheduling.schedule_for_customer(customer, date(2024, 3, 12))

        self.assertEqual(result['created'], 0)
        self.assertEqual(self.engine.emis.rows, {})
        self.assertEqual(self.engine.rents.rows, {})


if __name__ == '__main__':
    unittest.main()
