from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.contrib import admin
from django.test import RequestFactory, TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from catalog.models import Service, ServiceCategory, SubService
from drivers.models import Driver
from realtime.models import OrderEvent
from services.exceptions import (
	AlreadyClaimedError,
	AuthorizationError,
	ConflictError,
	IneligibleError,
	NotFoundError,
	ValidationError,
)
from services.order_management import (
	accept_offer,
	advance_order_status,
	cancel_order,
	claim_order,
	create_order,
	get_order_for_actor,
	list_available_orders,
	list_offers,
	reject_offer,
	submit_offer,
)
from .admin import OfferAdmin, OfferInline, OrderAdmin
from .models import Offer, Order
from .views import accept, claim, offers, orders


class OrderFixtures(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()

		self.tankers = ServiceCategory.objects.create(name='Water Tanker', slug='water-tanker')
		self.sand = ServiceCategory.objects.create(name='Sand Transport', slug='sand')
		self.small_tank = SubService.objects.create(category=self.tankers, name='5000L', slug='5000l')
		self.large_tank = SubService.objects.create(category=self.tankers, name='10000L', slug='10000l')
		self.water = Service.objects.create(category=self.tankers, name='Water delivery')
		self.sand_delivery = Service.objects.create(category=self.sand, name='Sand delivery')

		self.customer = User.objects.create_user(
			username='customer', password='pass1234', role='customer', phone_number='9000000000'
		)
		self.other_customer = User.objects.create_user(
			username='other', password='pass1234', role='customer', phone_number='9000000009'
		)
		self.admin = User.objects.create_user(username='ops', password='pass1234', role='admin')

		self.driver_one = self.make_driver('driver_one', 'WB-1001')
		self.driver_two = self.make_driver('driver_two', 'WB-1002')

	def make_driver(self, username, vehicle, status=Driver.STATUS_ONLINE, category=None, **kwargs):
		user = User.objects.create_user(username=username, password='driver1234', role='driver')
		return Driver.objects.create(
			user=user,
			vehicle_number=vehicle,
			status=status,
			service_category=category or self.tankers,
			**kwargs
		)

	def make_order(self, pricing_option=Order.PRICING_AUTO_ACCEPT, service=None, **kwargs):
		result = create_order(
			self.customer,
			service_id=(service or self.water).id,
			pricing_option=pricing_option,
			pickup_address='Sector 14 water point',
			dropoff_address='Plot 22, Green Park',
			total_amount='1200.00',
			driver_share='900.00',
			**kwargs
		)
		return result.order


class CreateOrderTests(OrderFixtures):
	def test_create_order_starts_new_with_request_number(self):
		order = self.make_order()

		self.assertEqual(order.status, Order.STATUS_NEW)
		self.assertIsNone(order.driver_id)
		self.assertEqual(order.pricing_option, Order.PRICING_AUTO_ACCEPT)
		self.assertTrue(order.request_number.startswith('REQ-'))

	def test_missing_pickup_address_is_rejected(self):
		with self.assertRaises(ValidationError) as ctx:
			create_order(
				self.customer,
				service_id=self.water.id,
				pricing_option=Order.PRICING_AUTO_ACCEPT,
				pickup_address='   ',
			)
		self.assertEqual(ctx.exception.details['field'], 'pickup_address')
		self.assertFalse(Order.objects.exists())

	def test_unknown_pricing_option_is_rejected(self):
		with self.assertRaises(ValidationError):
			self.make_order(pricing_option='auction')

	def test_driver_share_cannot_exceed_total(self):
		with self.assertRaises(ValidationError):
			create_order(
				self.customer,
				service_id=self.water.id,
				pricing_option=Order.PRICING_AUTO_ACCEPT,
				pickup_address='Depot',
				total_amount='100',
				driver_share='150',
			)

	def test_scheduled_for_in_past_is_rejected(self):
		with self.assertRaises(ValidationError):
			self.make_order(scheduled_for=timezone.now() - timedelta(hours=1))

	def test_naive_scheduled_for_is_taken_as_local_time(self):
		tomorrow = timezone.localtime() + timedelta(days=1)
		order = self.make_order(scheduled_for=tomorrow.replace(tzinfo=None))

		order.refresh_from_db()
		self.assertTrue(timezone.is_aware(order.scheduled_for))
		self.assertEqual(order.scheduled_for, tomorrow)

	def test_naive_scheduled_for_in_past_is_rejected(self):
		yesterday = timezone.localtime() - timedelta(days=1)
		with self.assertRaises(ValidationError) as ctx:
			self.make_order(scheduled_for=yesterday.replace(tzinfo=None))
		self.assertEqual(ctx.exception.details['field'], 'scheduled_for')
		self.assertFalse(Order.objects.exists())

	def test_sub_service_must_belong_to_service_category(self):
		with self.assertRaises(ValidationError):
			self.make_order(service=self.sand_delivery, sub_service_id=self.small_tank.id)

	def test_only_customers_create_orders(self):
		with self.assertRaises(AuthorizationError):
			create_order(
				self.driver_one.user,
				service_id=self.water.id,
				pricing_option=Order.PRICING_AUTO_ACCEPT,
				pickup_address='Depot',
			)

	@patch('services.order_management.order_lifecycle.generate_request_number')
	def test_request_number_collision_retries(self, mock_number):
		mock_number.side_effect = ['ORD-20260101-AAAA', 'ORD-20260101-AAAA', 'ORD-20260101-BBBB']
		first = self.make_order()
		second = self.make_order()

		self.assertEqual(first.request_number, 'ORD-20260101-AAAA')
		self.assertEqual(second.request_number, 'ORD-20260101-BBBB')
		self.assertEqual(mock_number.call_count, 3)

	@patch('realtime.notifications.deliver_order_event.delay')
	def test_new_order_is_announced_to_eligible_drivers(self, mock_delay):
		self.make_driver('sand_driver', 'WB-3001', category=self.sand)
		self.make_driver('asleep', 'WB-3002', status=Driver.STATUS_OFFLINE)

		with self.captureOnCommitCallbacks(execute=True):
			self.make_order()

		event = OrderEvent.objects.get()
		self.assertEqual(event.payload['type'], 'order_available')
		mock_delay.assert_called_once_with(event.id)
		self.assertEqual(event.groups, sorted([
			'driver_%d' % self.driver_one.id,
			'driver_%d' % self.driver_two.id,
		]))


class AutoAcceptClaimTests(OrderFixtures):
	def test_first_claim_wins_second_conflicts(self):
		order = self.make_order()

		result = claim_order(order.id, self.driver_one.id)
		self.assertTrue(result.success)

		with self.assertRaises(AlreadyClaimedError):
			claim_order(order.id, self.driver_two.id)

		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_IN_PROGRESS)
		self.assertEqual(order.driver_id, self.driver_one.id)
		self.assertIsNotNone(order.assigned_at)

	def test_concurrent_claim_with_stale_snapshot_loses(self):
		order = self.make_order()
		stale = Order.objects.select_related('service').get(pk=order.pk)

		claim_order(order.id, self.driver_one.id)

		# Second request read the order before the first one committed
		with patch('services.order_management.order_lifecycle.load_order', return_value=stale):
			with self.assertRaises(AlreadyClaimedError):
				claim_order(order.id, self.driver_two.id)

		order.refresh_from_db()
		self.assertEqual(order.driver_id, self.driver_one.id)

	def test_claim_racing_cancellation_reports_terminal(self):
		order = self.make_order()
		stale = Order.objects.select_related('service').get(pk=order.pk)
		cancel_order(order.id, self.customer)

		with patch('services.order_management.order_lifecycle.load_order', return_value=stale):
			with self.assertRaises(ConflictError) as ctx:
				claim_order(order.id, self.driver_one.id)
		self.assertEqual(ctx.exception.code, 'order_terminal')

	def test_choose_offer_order_cannot_be_claimed(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		with self.assertRaises(ConflictError) as ctx:
			claim_order(order.id, self.driver_one.id)
		self.assertEqual(ctx.exception.code, 'pricing_option_mismatch')

	def test_offline_driver_is_ineligible(self):
		order = self.make_order()
		sleepy = self.make_driver('sleepy', 'WB-2001', status=Driver.STATUS_OFFLINE)

		with self.assertRaises(IneligibleError) as ctx:
			claim_order(order.id, sleepy.id)
		self.assertEqual(ctx.exception.reason, 'offline')

	def test_pending_driver_is_told_to_wait_for_approval(self):
		order = self.make_order()
		newbie = self.make_driver('newbie', 'WB-2002', status=Driver.STATUS_PENDING)

		with self.assertRaises(IneligibleError) as ctx:
			claim_order(order.id, newbie.id)
		self.assertEqual(ctx.exception.reason, 'pending_approval')

	def test_category_mismatch_is_ineligible(self):
		order = self.make_order()
		sand_driver = self.make_driver('sandy', 'WB-2003', category=self.sand)

		with self.assertRaises(IneligibleError) as ctx:
			claim_order(order.id, sand_driver.id)
		self.assertEqual(ctx.exception.reason, 'category_mismatch')

	def test_sub_service_mismatch_is_ineligible(self):
		order = self.make_order(sub_service_id=self.large_tank.id)
		small_only = self.make_driver('small', 'WB-2004', sub_service=self.small_tank)

		with self.assertRaises(IneligibleError):
			claim_order(order.id, small_only.id)

		# Driver without a sub-service covers the whole category
		self.assertTrue(claim_order(order.id, self.driver_one.id).success)

	def test_special_driver_bypasses_category_match(self):
		order = self.make_order()
		special = self.make_driver('special', 'WB-2005', category=self.sand, special=True)

		self.assertTrue(claim_order(order.id, special.id).success)

	def test_unknown_ids_are_not_found(self):
		order = self.make_order()
		with self.assertRaises(NotFoundError):
			claim_order(order.id + 100, self.driver_one.id)
		with self.assertRaises(NotFoundError):
			claim_order(order.id, self.driver_one.id + 100)

	@patch('realtime.notifications.deliver_order_event.delay')
	def test_claim_notifies_customer_and_driver(self, mock_delay):
		order = self.make_order()

		with self.captureOnCommitCallbacks(execute=True):
			claim_order(order.id, self.driver_one.id)

		events = {event.payload['type']: event.groups for event in OrderEvent.objects.all()}
		self.assertEqual(mock_delay.call_count, 2)
		self.assertIn('user_%d' % self.customer.id, events['order_assigned'])
		self.assertIn('driver_%d' % self.driver_one.id, events['order_assigned'])
		self.assertIn('order_status_changed', events)


class ChooseOfferTests(OrderFixtures):
	def test_offers_then_acceptance_assigns_one_driver(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)

		first = submit_offer(order.id, self.driver_one.id, Decimal('100'))
		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_PENDING)

		second = submit_offer(order.id, self.driver_two.id, '90')
		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_PENDING)
		self.assertEqual(order.offers.count(), 2)

		result = accept_offer(second.offer.id, self.customer)
		self.assertEqual(result.extra['closed_offers'], 1)

		order.refresh_from_db()
		first.offer.refresh_from_db()
		second.offer.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_IN_PROGRESS)
		self.assertEqual(order.driver_id, self.driver_two.id)
		self.assertIs(second.offer.accepted, True)
		self.assertIs(first.offer.accepted, False)

	def test_offer_price_must_be_positive(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		for price in (None, '0', '-5', 'abc'):
			with self.assertRaises(ValidationError):
				submit_offer(order.id, self.driver_one.id, price)
		self.assertFalse(Offer.objects.exists())

	def test_auto_accept_order_takes_no_offers(self):
		order = self.make_order()
		with self.assertRaises(ConflictError) as ctx:
			submit_offer(order.id, self.driver_one.id, '100')
		self.assertEqual(ctx.exception.code, 'pricing_option_mismatch')

	def test_one_open_offer_per_driver(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		submit_offer(order.id, self.driver_one.id, '100')

		with self.assertRaises(ConflictError) as ctx:
			submit_offer(order.id, self.driver_one.id, '95')
		self.assertEqual(ctx.exception.code, 'duplicate_offer')
		self.assertEqual(order.offers.count(), 1)

	def test_driver_may_bid_again_after_rejection(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		first = submit_offer(order.id, self.driver_one.id, '100')
		reject_offer(first.offer.id, self.customer)

		again = submit_offer(order.id, self.driver_one.id, '80')
		self.assertIsNone(again.offer.accepted)

	def test_no_offers_once_assigned(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		offer = submit_offer(order.id, self.driver_one.id, '100').offer
		accept_offer(offer.id, self.customer)

		with self.assertRaises(ConflictError) as ctx:
			submit_offer(order.id, self.driver_two.id, '90')
		self.assertEqual(ctx.exception.code, 'order_not_open')

	def test_only_owner_can_accept(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		offer = submit_offer(order.id, self.driver_one.id, '100').offer

		with self.assertRaises(AuthorizationError):
			accept_offer(offer.id, self.other_customer)

	def test_authorization_is_checked_before_offer_state(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		offer = submit_offer(order.id, self.driver_one.id, '100').offer
		accept_offer(offer.id, self.customer)

		with self.assertRaises(AuthorizationError):
			accept_offer(offer.id, self.other_customer)

	def test_accepting_resolved_offer_conflicts(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		offer = submit_offer(order.id, self.driver_one.id, '100').offer
		reject_offer(offer.id, self.customer)

		with self.assertRaises(ConflictError) as ctx:
			accept_offer(offer.id, self.customer)
		self.assertEqual(ctx.exception.code, 'offer_not_pending')

	def test_concurrent_acceptances_leave_one_accepted_offer(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		first = submit_offer(order.id, self.driver_one.id, '100').offer
		second = submit_offer(order.id, self.driver_two.id, '90').offer
		stale_second = Offer.objects.select_related('order').get(pk=second.pk)

		accept_offer(first.id, self.customer)

		with patch('services.order_management.offers._load_offer', return_value=stale_second):
			with self.assertRaises(ConflictError):
				accept_offer(second.id, self.customer)

		self.assertEqual(Offer.objects.filter(order=order, accepted=True).count(), 1)
		order.refresh_from_db()
		self.assertEqual(order.driver_id, self.driver_one.id)

	def test_accept_rolls_back_when_offer_resolved_meanwhile(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		offer = submit_offer(order.id, self.driver_one.id, '100').offer
		stale = Offer.objects.select_related('order').get(pk=offer.pk)
		Offer.objects.filter(pk=offer.pk).update(accepted=False)

		with patch('services.order_management.offers._load_offer', return_value=stale):
			with self.assertRaises(ConflictError):
				accept_offer(offer.id, self.customer)

		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_PENDING)
		self.assertIsNone(order.driver_id)

	def test_offer_racing_cancellation_is_not_stored(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		stale = Order.objects.select_related('service').get(pk=order.pk)
		cancel_order(order.id, self.customer)

		# Driver read the order before the cancellation committed
		with patch('services.order_management.offers.load_order', return_value=stale):
			with self.assertRaises(ConflictError) as ctx:
				submit_offer(order.id, self.driver_one.id, '100')
		self.assertEqual(ctx.exception.code, 'order_not_open')

		self.assertFalse(Offer.objects.exists())
		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_CANCELLED)

	def test_offer_racing_acceptance_is_not_stored(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		winner = submit_offer(order.id, self.driver_one.id, '100').offer
		stale = Order.objects.select_related('service').get(pk=order.pk)
		accept_offer(winner.id, self.customer)

		with patch('services.order_management.offers.load_order', return_value=stale):
			with self.assertRaises(ConflictError) as ctx:
				submit_offer(order.id, self.driver_two.id, '90')
		self.assertEqual(ctx.exception.code, 'order_not_open')

		self.assertEqual(list(Offer.objects.values_list('driver_id', flat=True)), [self.driver_one.id])
		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_IN_PROGRESS)
		self.assertEqual(order.driver_id, self.driver_one.id)

	def test_reject_leaves_order_untouched(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		offer = submit_offer(order.id, self.driver_one.id, '100').offer

		result = reject_offer(offer.id, self.customer)

		self.assertIs(result.offer.accepted, False)
		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_PENDING)
		self.assertIsNone(order.driver_id)

	def test_offers_visible_to_owner_and_own_driver_only(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		submit_offer(order.id, self.driver_one.id, '100')
		submit_offer(order.id, self.driver_two.id, '90')

		self.assertEqual(len(list_offers(order.id, self.customer)), 2)
		mine = list_offers(order.id, self.driver_one.user)
		self.assertEqual([offer.driver_id for offer in mine], [self.driver_one.id])
		with self.assertRaises(AuthorizationError):
			list_offers(order.id, self.other_customer)

	@patch('realtime.notifications.deliver_order_event.delay')
	def test_offer_received_goes_to_customer(self, mock_delay):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)

		with self.captureOnCommitCallbacks(execute=True):
			result = submit_offer(order.id, self.driver_one.id, '100')

		payloads = [event.payload for event in OrderEvent.objects.order_by('id')]
		received = [p for p in payloads if p['type'] == 'offer_received']
		self.assertEqual(received[0]['offer_id'], result.offer.id)
		self.assertTrue(any(p['type'] == 'order_status_changed' and p['to'] == 'pending' for p in payloads))


class ProgressAndCancellationTests(OrderFixtures):
	def test_driver_moves_order_to_delivered(self):
		order = self.make_order()
		claim_order(order.id, self.driver_one.id)

		advance_order_status(order.id, self.driver_one.id, Order.STATUS_PICKED_UP)
		advance_order_status(order.id, self.driver_one.id, Order.STATUS_DELIVERED)

		order.refresh_from_db()
		self.customer.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_DELIVERED)
		self.assertIsNotNone(order.picked_up_at)
		self.assertIsNotNone(order.delivered_at)
		self.assertEqual(self.customer.completed_orders, 1)

	def test_picked_up_is_optional(self):
		order = self.make_order()
		claim_order(order.id, self.driver_one.id)

		advance_order_status(order.id, self.driver_one.id, Order.STATUS_DELIVERED)
		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_DELIVERED)

	def test_delivered_order_is_terminal(self):
		order = self.make_order()
		claim_order(order.id, self.driver_one.id)
		advance_order_status(order.id, self.driver_one.id, Order.STATUS_DELIVERED)

		with self.assertRaises(ConflictError) as ctx:
			advance_order_status(order.id, self.driver_one.id, Order.STATUS_PICKED_UP)
		self.assertEqual(ctx.exception.code, 'order_terminal')
		with self.assertRaises(ConflictError):
			cancel_order(order.id, self.admin)

	def test_only_assigned_driver_advances(self):
		order = self.make_order()
		claim_order(order.id, self.driver_one.id)

		with self.assertRaises(AuthorizationError):
			advance_order_status(order.id, self.driver_two.id, Order.STATUS_PICKED_UP)

	def test_unknown_target_status_is_invalid(self):
		order = self.make_order()
		claim_order(order.id, self.driver_one.id)

		with self.assertRaises(ValidationError):
			advance_order_status(order.id, self.driver_one.id, Order.STATUS_CANCELLED)

	def test_cancel_new_order_closes_pending_offers(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		submit_offer(order.id, self.driver_one.id, '100')
		submit_offer(order.id, self.driver_two.id, '90')

		result = cancel_order(order.id, self.customer, 'Found another supplier')

		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_CANCELLED)
		self.assertEqual(order.cancelled_by, 'customer')
		self.assertEqual(order.cancellation_reason, 'Found another supplier')
		self.assertEqual(result.extra['closed_offers'], 2)
		self.assertEqual(order.offers.filter(accepted=False).count(), 2)
		self.assertEqual(order.offers.count(), 2)

	def test_repeating_picked_up_is_invalid(self):
		order = self.make_order()
		claim_order(order.id, self.driver_one.id)
		advance_order_status(order.id, self.driver_one.id, Order.STATUS_PICKED_UP)

		with self.assertRaises(ConflictError) as ctx:
			advance_order_status(order.id, self.driver_one.id, Order.STATUS_PICKED_UP)
		self.assertEqual(ctx.exception.code, 'invalid_transition')

	def test_advance_with_stale_snapshot_conflicts(self):
		order = self.make_order()
		claim_order(order.id, self.driver_one.id)
		stale = Order.objects.select_related('service').get(pk=order.pk)
		advance_order_status(order.id, self.driver_one.id, Order.STATUS_PICKED_UP)

		with patch('services.order_management.order_lifecycle.load_order', return_value=stale):
			with self.assertRaises(ConflictError) as ctx:
				advance_order_status(order.id, self.driver_one.id, Order.STATUS_DELIVERED)
		self.assertEqual(ctx.exception.code, 'order_changed')

		order.refresh_from_db()
		self.customer.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_PICKED_UP)
		self.assertIsNone(order.delivered_at)
		self.assertEqual(self.customer.completed_orders, 0)

	def test_cancel_racing_claim_conflicts(self):
		order = self.make_order()
		stale = Order.objects.select_related('service').get(pk=order.pk)
		claim_order(order.id, self.driver_one.id)

		# Customer saw the order while it was still new
		with patch('services.order_management.order_lifecycle.load_order', return_value=stale):
			with self.assertRaises(ConflictError) as ctx:
				cancel_order(order.id, self.customer)
		self.assertEqual(ctx.exception.code, 'order_changed')

		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_IN_PROGRESS)
		self.assertEqual(order.driver_id, self.driver_one.id)
		self.assertIsNone(order.cancelled_at)
		self.assertEqual(order.cancelled_by, '')

	def test_customer_cannot_cancel_after_driver_committed(self):
		order = self.make_order()
		claim_order(order.id, self.driver_one.id)

		with self.assertRaises(ConflictError) as ctx:
			cancel_order(order.id, self.customer)
		self.assertEqual(ctx.exception.code, 'driver_committed')

	def test_admin_cancel_releases_driver(self):
		order = self.make_order()
		claim_order(order.id, self.driver_one.id)

		result = cancel_order(order.id, self.admin, 'Vehicle breakdown')

		order.refresh_from_db()
		self.assertEqual(order.status, Order.STATUS_CANCELLED)
		self.assertIsNone(order.driver_id)
		self.assertEqual(order.cancelled_by, 'admin')
		self.assertTrue(result.extra['was_assigned'])

	def test_other_customer_cannot_cancel(self):
		order = self.make_order()
		with self.assertRaises(AuthorizationError):
			cancel_order(order.id, self.other_customer)

	def test_cancel_twice_conflicts(self):
		order = self.make_order()
		cancel_order(order.id, self.customer)
		with self.assertRaises(ConflictError) as ctx:
			cancel_order(order.id, self.customer)
		self.assertEqual(ctx.exception.code, 'order_terminal')

	@patch('realtime.notifications.deliver_order_event.delay')
	def test_cancellation_notifies_offer_drivers(self, mock_delay):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		submit_offer(order.id, self.driver_one.id, '100')

		with self.captureOnCommitCallbacks(execute=True):
			cancel_order(order.id, self.customer)

		event = OrderEvent.objects.latest('id')
		mock_delay.assert_called_with(event.id)
		self.assertEqual(event.payload['type'], 'order_cancelled')
		self.assertEqual(event.payload['actor'], 'customer')
		self.assertIn('driver_%d' % self.driver_one.id, event.groups)
		self.assertIn('user_%d' % self.customer.id, event.groups)


class VisibilityTests(OrderFixtures):
	def test_available_orders_follow_capability(self):
		water = self.make_order()
		self.make_order(service=self.sand_delivery)
		bid_on = self.make_order(Order.PRICING_CHOOSE_OFFER)
		submit_offer(bid_on.id, self.driver_one.id, '100')

		available = list_available_orders(self.driver_one.id)

		self.assertEqual({order.id for order in available}, {water.id, bid_on.id})
		flags = {order.id: order.has_open_offer for order in available}
		self.assertTrue(flags[bid_on.id])
		self.assertFalse(flags[water.id])

	def test_offline_driver_sees_nothing(self):
		self.make_order()
		sleepy = self.make_driver('sleepy', 'WB-2001', status=Driver.STATUS_OFFLINE)
		self.assertEqual(list_available_orders(sleepy.id), [])

	def test_assigned_order_visible_to_driver_not_others(self):
		order = self.make_order()
		claim_order(order.id, self.driver_one.id)

		self.assertEqual(get_order_for_actor(order.id, self.driver_one.user).id, order.id)
		with self.assertRaises(AuthorizationError):
			get_order_for_actor(order.id, self.driver_two.user)
		with self.assertRaises(AuthorizationError):
			get_order_for_actor(order.id, self.other_customer)


class OrderApiTests(OrderFixtures):
	def test_create_order_endpoint(self):
		request = self.factory.post('/api/orders/', {
			'service': self.water.id,
			'pricing_option': 'choose_offer',
			'pickup_address': 'Sector 14 water point',
			'total_amount': '1500.00',
		}, format='json')
		force_authenticate(request, user=self.customer)
		response = orders(request)

		self.assertEqual(response.status_code, 201)
		self.assertTrue(response.data['success'])
		self.assertEqual(response.data['order']['status'], 'new')
		self.assertEqual(response.data['driver_candidates'], 2)

	def test_create_without_pickup_address_returns_400(self):
		request = self.factory.post('/api/orders/', {
			'service': self.water.id,
			'pricing_option': 'auto_accept',
		}, format='json')
		force_authenticate(request, user=self.customer)
		response = orders(request)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'invalid')
		self.assertEqual(response.data['field'], 'pickup_address')

	def test_second_claim_returns_409(self):
		order = self.make_order()

		request = self.factory.post('/api/orders/%d/claim/' % order.id)
		force_authenticate(request, user=self.driver_one.user)
		self.assertEqual(claim(request, order_id=order.id).status_code, 200)

		request = self.factory.post('/api/orders/%d/claim/' % order.id)
		force_authenticate(request, user=self.driver_two.user)
		response = claim(request, order_id=order.id)

		self.assertEqual(response.status_code, 409)
		self.assertFalse(response.data['success'])
		self.assertEqual(response.data['error'], 'already_claimed')

	def test_ineligible_claim_returns_403_with_reason(self):
		order = self.make_order()
		sand_driver = self.make_driver('sandy', 'WB-2003', category=self.sand)

		request = self.factory.post('/api/orders/%d/claim/' % order.id)
		force_authenticate(request, user=sand_driver.user)
		response = claim(request, order_id=order.id)

		self.assertEqual(response.status_code, 403)
		self.assertEqual(response.data['reason'], 'category_mismatch')

	def test_customer_cannot_claim(self):
		order = self.make_order()
		request = self.factory.post('/api/orders/%d/claim/' % order.id)
		force_authenticate(request, user=self.customer)
		self.assertEqual(claim(request, order_id=order.id).status_code, 403)

	def test_submit_and_accept_offer_endpoints(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)

		request = self.factory.post('/api/orders/%d/offers/' % order.id, {'price': '120.00'}, format='json')
		force_authenticate(request, user=self.driver_one.user)
		response = offers(request, order_id=order.id)
		self.assertEqual(response.status_code, 201)
		offer_id = response.data['offer']['id']

		request = self.factory.post('/api/orders/offers/%d/accept/' % offer_id)
		force_authenticate(request, user=self.customer)
		response = accept(request, offer_id=offer_id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['order']['status'], 'in_progress')
		self.assertEqual(response.data['order']['driver']['id'], self.driver_one.id)

	def test_missing_offer_returns_404(self):
		request = self.factory.post('/api/orders/offers/999/accept/')
		force_authenticate(request, user=self.customer)
		response = accept(request, offer_id=999)

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'offer_not_found')

class OrderAdminTests(OrderFixtures):
	def setUp(self):
		super().setUp()
		self.request = RequestFactory().get('/admin/orders/order/')
		self.request.user = self.admin

	def test_orders_and_offers_are_read_only_in_admin(self):
		order = self.make_order(Order.PRICING_CHOOSE_OFFER)
		offer = submit_offer(order.id, self.driver_one.id, '100').offer

		order_admin = OrderAdmin(Order, admin.site)
		offer_admin = OfferAdmin(Offer, admin.site)
		inline = OfferInline(Order, admin.site)

		for model_admin, obj in ((order_admin, order), (offer_admin, offer)):
			self.assertFalse(model_admin.has_add_permission(self.request))
			self.assertFalse(model_admin.has_change_permission(self.request, obj))
			self.assertFalse(model_admin.has_delete_permission(self.request, obj))
		self.assertFalse(inline.has_add_permission(self.request, order))
		self.assertFalse(inline.has_change_permission(self.request, order))
		self.assertFalse(inline.has_delete_permission(self.request, order))

		self.assertEqual(list(order_admin.get_actions(self.request)), ['cancel_selected'])

	@patch.object(OrderAdmin, 'message_user')
	def test_cancel_action_goes_through_cancel_order(self, mock_message):
		open_order = self.make_order()
		done = self.make_order()
		claim_order(done.id, self.driver_one.id)
		advance_order_status(done.id, self.driver_one.id, Order.STATUS_DELIVERED)

		OrderAdmin(Order, admin.site).cancel_selected(
			self.request, Order.objects.filter(pk__in=[open_order.pk, done.pk])
		)

		open_order.refresh_from_db()
		done.refresh_from_db()
		self.assertEqual(open_order.status, Order.STATUS_CANCELLED)
		self.assertEqual(open_order.cancelled_by, 'admin')
		self.assertEqual(done.status, Order.STATUS_DELIVERED)
		self.assertEqual(mock_message.call_count, 2)
