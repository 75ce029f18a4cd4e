from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from catalog.models import ServiceCategory, SubService
from drivers import services
from drivers.models import Driver
from drivers.views import DriverApproveView, DriverStatusView
from services.exceptions import (
	ConflictError,
	IneligibleError,
	InsufficientBalanceError,
	ValidationError,
)
from wallet.models import Transaction
from wallet.services import record_transaction


class DriverAvailabilityTests(TestCase):
	"""Minimum wallet balance is 50 under the test settings."""

	def setUp(self):
		self.factory = APIRequestFactory()
		self.category = ServiceCategory.objects.create(name='Water Tanker', slug='water-tanker')
		self.user = User.objects.create_user(username='driver', password='driver1234', role='driver')
		self.driver = Driver.objects.create(
			user=self.user,
			vehicle_number='WB-1001',
			status=Driver.STATUS_OFFLINE,
			service_category=self.category,
		)

	def test_online_refused_below_threshold(self):
		record_transaction(self.driver.id, Transaction.TYPE_DEPOSIT, '30')

		with self.assertRaises(InsufficientBalanceError) as ctx:
			services.set_driver_online(self.driver.id)

		self.assertEqual(ctx.exception.reason, 'insufficient_balance')
		self.assertEqual(ctx.exception.balance, Decimal('30'))
		self.driver.refresh_from_db()
		self.assertEqual(self.driver.status, Driver.STATUS_OFFLINE)

	def test_online_allowed_at_threshold(self):
		record_transaction(self.driver.id, Transaction.TYPE_DEPOSIT, '80')
		record_transaction(self.driver.id, Transaction.TYPE_COMMISSION, '30')

		services.set_driver_online(self.driver.id)

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.status, Driver.STATUS_ONLINE)

	def test_special_driver_goes_online_with_empty_wallet(self):
		Driver.objects.filter(pk=self.driver.pk).update(special=True)

		services.set_driver_online(self.driver.id)

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.status, Driver.STATUS_ONLINE)

	def test_pending_driver_cannot_go_online(self):
		Driver.objects.filter(pk=self.driver.pk).update(status=Driver.STATUS_PENDING)
		record_transaction(self.driver.id, Transaction.TYPE_DEPOSIT, '500')

		with self.assertRaises(IneligibleError) as ctx:
			services.set_driver_online(self.driver.id)
		self.assertEqual(ctx.exception.reason, 'pending_approval')

	def test_offline_is_never_gated(self):
		Driver.objects.filter(pk=self.driver.pk).update(status=Driver.STATUS_ONLINE)
		record_transaction(self.driver.id, Transaction.TYPE_WITHDRAWAL, '10')

		services.set_driver_offline(self.driver.id)

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.status, Driver.STATUS_OFFLINE)

	def test_status_endpoint_reports_insufficient_balance(self):
		request = self.factory.put('/api/driver/status/', {'status': 'online'}, format='json')
		force_authenticate(request, user=self.user)
		response = DriverStatusView.as_view()(request)

		self.assertEqual(response.status_code, 403)
		self.assertFalse(response.data['success'])
		self.assertEqual(response.data['error'], 'insufficient_balance')
		self.assertEqual(response.data['threshold'], '50')

	def test_status_endpoint_goes_online(self):
		record_transaction(self.driver.id, Transaction.TYPE_DEPOSIT, '100')

		request = self.factory.put('/api/driver/status/', {'status': 'online'}, format='json')
		force_authenticate(request, user=self.user)
		response = DriverStatusView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['status'], 'online')


class DriverApprovalTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.tankers = ServiceCategory.objects.create(name='Water Tanker', slug='water-tanker')
		self.sand = ServiceCategory.objects.create(name='Sand Transport', slug='sand')
		self.small_tank = SubService.objects.create(category=self.tankers, name='5000L', slug='5000l')
		self.admin = User.objects.create_user(username='ops', password='pass1234', role='admin')
		user = User.objects.create_user(username='applicant', password='driver1234', role='driver')
		self.driver = Driver.objects.create(user=user, vehicle_number='WB-2001')

	def test_approve_sets_specialization_and_offline(self):
		driver = services.approve_driver(
			self.driver.id,
			service_category_id=self.tankers.id,
			sub_service_id=self.small_tank.id,
		)

		self.assertEqual(driver.status, Driver.STATUS_OFFLINE)
		self.assertEqual(driver.service_category_id, self.tankers.id)
		self.assertEqual(driver.sub_service_id, self.small_tank.id)
		self.assertIsNotNone(driver.approved_at)

	def test_approve_ignores_wallet(self):
		record_transaction(self.driver.id, Transaction.TYPE_WITHDRAWAL, '20')
		driver = services.approve_driver(self.driver.id)
		self.assertTrue(driver.is_approved)

	def test_sub_service_must_match_category(self):
		with self.assertRaises(ValidationError):
			services.approve_driver(
				self.driver.id,
				service_category_id=self.sand.id,
				sub_service_id=self.small_tank.id,
			)

	def test_only_pending_drivers_are_approved_or_rejected(self):
		services.reject_driver(self.driver.id)

		with self.assertRaises(ConflictError) as ctx:
			services.approve_driver(self.driver.id)
		self.assertEqual(ctx.exception.code, 'driver_not_pending')

		with self.assertRaises(IneligibleError) as ctx:
			services.set_driver_online(self.driver.id)
		self.assertEqual(ctx.exception.reason, 'rejected')

	def test_approve_endpoint_requires_admin(self):
		request = self.factory.post('/api/driver/%d/approve/' % self.driver.id, {}, format='json')
		force_authenticate(request, user=self.driver.user)
		response = DriverApproveView.as_view()(request, driver_id=self.driver.id)
		self.assertEqual(response.status_code, 403)

		request = self.factory.post(
			'/api/driver/%d/approve/' % self.driver.id,
			{'service_category': self.tankers.id},
			format='json'
		)
		force_authenticate(request, user=self.admin)
		response = DriverApproveView.as_view()(request, driver_id=self.driver.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['driver']['status'], 'offline')
		self.assertEqual(response.data['driver']['service_category'], self.tankers.id)

	def test_set_special_flag(self):
		driver = services.set_driver_special(self.driver.id, True)
		self.assertTrue(driver.special)
		self.driver.refresh_from_db()
		self.assertTrue(self.driver.special)
