from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from drivers.models import Driver
from services.exceptions import ConflictError, NotFoundError, ValidationError
from wallet.models import Transaction
from wallet.services import complete_transaction, get_balance, record_transaction
from wallet.views import WalletBalanceView


class WalletLedgerTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.user = User.objects.create_user(username='driver', password='driver1234', role='driver')
		self.driver = Driver.objects.create(
			user=self.user, vehicle_number='WB-1001', status=Driver.STATUS_OFFLINE
		)

	def test_empty_ledger_has_zero_balance(self):
		self.assertEqual(get_balance(self.driver.id), Decimal('0'))

	def test_balance_sums_completed_entries_only(self):
		record_transaction(self.driver.id, Transaction.TYPE_DEPOSIT, '100')
		record_transaction(self.driver.id, Transaction.TYPE_COMMISSION, '15.50')
		record_transaction(self.driver.id, Transaction.TYPE_ADJUSTMENT, '-4.50')
		record_transaction(
			self.driver.id, Transaction.TYPE_DEPOSIT, '500', status=Transaction.STATUS_PENDING
		)

		self.assertEqual(get_balance(self.driver.id), Decimal('80.00'))
		self.driver.refresh_from_db()
		self.assertEqual(self.driver.wallet_balance, Decimal('80.00'))

	def test_completing_pending_entry_moves_balance_once(self):
		entry = record_transaction(
			self.driver.id, Transaction.TYPE_DEPOSIT, '60', status=Transaction.STATUS_PENDING
		)

		complete_transaction(entry.id)
		self.assertEqual(get_balance(self.driver.id), Decimal('60'))

		with self.assertRaises(ConflictError):
			complete_transaction(entry.id)
		self.driver.refresh_from_db()
		self.assertEqual(self.driver.wallet_balance, Decimal('60'))

	def test_invalid_entries_are_rejected(self):
		with self.assertRaises(ValidationError):
			record_transaction(self.driver.id, Transaction.TYPE_DEPOSIT, '-10')
		with self.assertRaises(ValidationError):
			record_transaction(self.driver.id, Transaction.TYPE_ADJUSTMENT, '0')
		with self.assertRaises(ValidationError):
			record_transaction(self.driver.id, 'bonus', '10')
		with self.assertRaises(NotFoundError):
			record_transaction(self.driver.id + 100, Transaction.TYPE_DEPOSIT, '10')

	def test_balance_endpoint(self):
		record_transaction(self.driver.id, Transaction.TYPE_DEPOSIT, '75')

		request = self.factory.get('/api/wallet/balance/')
		force_authenticate(request, user=self.user)
		response = WalletBalanceView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(Decimal(response.data['balance']), Decimal('75'))
		self.assertTrue(response.data['can_go_online'])
