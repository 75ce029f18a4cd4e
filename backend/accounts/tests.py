from django.test import TestCase
from rest_framework.test import APIRequestFactory

from accounts.models import User
from accounts.views import RegisterView
from catalog.models import ServiceCategory, SubService
from drivers.models import Driver


class RegisterViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.view = RegisterView.as_view()
		self.tankers = ServiceCategory.objects.create(name='Water Tanker', slug='water-tanker')
		self.sand = ServiceCategory.objects.create(name='Sand Transport', slug='sand')
		self.small_tank = SubService.objects.create(category=self.tankers, name='5000L', slug='5000l')

	def register(self, **data):
		body = {
			'username': 'asha',
			'email': 'asha@example.com',
			'password': 'password123',
			'role': 'customer',
			'phone_number': '9000000000',
		}
		body.update(data)
		request = self.factory.post('/api/auth/register/', body, format='json')
		return self.view(request)

	def test_customer_registration_returns_tokens(self):
		response = self.register()

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['user']['role'], 'customer')
		self.assertIn('access', response.data['tokens'])
		self.assertIn('refresh', response.data['tokens'])

		user = User.objects.get(username='asha')
		self.assertTrue(user.check_password('password123'))
		self.assertFalse(Driver.objects.filter(user=user).exists())

	def test_driver_registers_as_pending_with_specialization(self):
		response = self.register(
			username='ravi', email='ravi@example.com', role='driver',
			vehicle_number=' WB-1001 ', sub_service=self.small_tank.id,
		)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['driver_status'], 'pending')
		driver = Driver.objects.get(user__username='ravi')
		self.assertEqual(driver.status, Driver.STATUS_PENDING)
		self.assertEqual(driver.vehicle_number, 'WB-1001')
		# Category comes from the sub-service
		self.assertEqual(driver.service_category_id, self.tankers.id)
		self.assertEqual(driver.sub_service_id, self.small_tank.id)

	def test_driver_without_vehicle_number_is_rejected(self):
		response = self.register(role='driver')

		self.assertEqual(response.status_code, 400)
		self.assertIn('vehicle_number', response.data)
		self.assertFalse(User.objects.exists())

	def test_sub_service_outside_category_is_rejected(self):
		response = self.register(
			role='driver', vehicle_number='WB-1001',
			service_category=self.sand.id, sub_service=self.small_tank.id,
		)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['field'], 'sub_service')
		self.assertFalse(User.objects.exists())
		self.assertFalse(Driver.objects.exists())

	def test_duplicate_vehicle_and_username_are_rejected(self):
		self.register(username='ravi', email='ravi@example.com', role='driver', vehicle_number='WB-1001')

		response = self.register(username='ravi2', email='ravi2@example.com', role='driver', vehicle_number='WB-1001')
		self.assertEqual(response.status_code, 400)
		self.assertIn('vehicle_number', response.data)

		response = self.register(username='ravi', email='other@example.com')
		self.assertEqual(response.status_code, 400)
		self.assertIn('username', response.data)

	def test_admin_role_cannot_be_self_assigned(self):
		response = self.register(role='admin')

		self.assertEqual(response.status_code, 400)
		self.assertIn('role', response.data)
		self.assertFalse(User.objects.exists())
