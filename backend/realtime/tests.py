from unittest.mock import AsyncMock, patch

from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from accounts.models import User
from realtime.consumers import EventsConsumer
from realtime.models import OrderEvent
from realtime.notifications import publish
from realtime.tasks import deliver_order_event, redeliver_pending_events


class EventsConsumerTests(SimpleTestCase):
	databases = {'default'}

	async def connect(self, user):
		communicator = WebsocketCommunicator(EventsConsumer.as_asgi(), '/ws/events/')
		communicator.scope['user'] = user
		connected, _ = await communicator.connect()
		return communicator, connected

	async def test_anonymous_connection_is_refused(self):
		communicator, connected = await self.connect(AnonymousUser())
		self.assertFalse(connected)

	async def test_customer_receives_events_for_personal_group(self):
		customer = User(id=41, username='customer', role='customer')
		communicator, connected = await self.connect(customer)
		self.assertTrue(connected)

		hello = await communicator.receive_json_from()
		self.assertEqual(hello['type'], 'connection_established')
		self.assertIsNone(hello['driver_id'])

		event = {'type': 'order_assigned', 'order_id': 7, 'status': 'in_progress', 'driver_id': 3}
		await get_channel_layer().group_send('user_41', event)
		self.assertEqual(await communicator.receive_json_from(), event)

		await communicator.send_json_to({'type': 'ping'})
		self.assertEqual(await communicator.receive_json_from(), {'type': 'pong'})
		await communicator.disconnect()

	@patch('realtime.consumers._get_driver_id', new_callable=AsyncMock, return_value=9)
	async def test_driver_joins_driver_group(self, mock_driver_id):
		driver = User(id=42, username='driver', role='driver')
		communicator, connected = await self.connect(driver)
		self.assertTrue(connected)

		hello = await communicator.receive_json_from()
		self.assertEqual(hello['driver_id'], 9)

		event = {'type': 'order_available', 'order_id': 8, 'status': 'new'}
		await get_channel_layer().group_send('driver_9', event)
		self.assertEqual(await communicator.receive_json_from(), event)
		await communicator.disconnect()


class PublishTests(TestCase):
	@patch('realtime.notifications.deliver_order_event.delay')
	def test_events_wait_for_commit(self, mock_delay):
		with self.captureOnCommitCallbacks(execute=False) as callbacks:
			self.assertTrue(publish(['user_1', 'driver_2', 'user_1'], {'type': 'order_assigned'}))

		mock_delay.assert_not_called()
		event = OrderEvent.objects.get()
		self.assertEqual(event.groups, ['driver_2', 'user_1'])
		self.assertIsNone(event.delivered_at)

		self.assertEqual(len(callbacks), 1)
		callbacks[0]()
		mock_delay.assert_called_once_with(event.id)

	def test_no_groups_means_nothing_queued(self):
		with self.captureOnCommitCallbacks() as callbacks:
			self.assertFalse(publish([], {'type': 'order_available'}))
		self.assertEqual(callbacks, [])
		self.assertFalse(OrderEvent.objects.exists())

	@patch('realtime.notifications.deliver_order_event.delay', side_effect=ConnectionError('broker down'))
	def test_broker_failure_keeps_event_for_redelivery(self, mock_delay):
		with self.assertLogs('realtime.notifications', level='ERROR'):
			with self.captureOnCommitCallbacks(execute=True):
				publish(['user_1'], {'type': 'order_cancelled', 'order_id': 1})
		mock_delay.assert_called_once()

		event = OrderEvent.objects.get()
		self.assertIsNone(event.delivered_at)

		# Broker is back: the periodic sweep picks the row up again
		with patch('realtime.tasks.get_channel_layer') as mock_layer:
			mock_layer.return_value.group_send = AsyncMock()
			queued = redeliver_pending_events(older_than=0)

		self.assertEqual(queued, 1)
		event.refresh_from_db()
		self.assertIsNotNone(event.delivered_at)
		mock_layer.return_value.group_send.assert_awaited_once_with(
			'user_1', {'type': 'order_cancelled', 'order_id': 1}
		)

	def test_sweep_skips_fresh_and_delivered_events(self):
		OrderEvent.objects.create(groups=['user_1'], payload={'type': 'order_assigned'})
		OrderEvent.objects.create(
			groups=['user_2'], payload={'type': 'order_assigned'}, delivered_at=timezone.now()
		)

		with patch('realtime.tasks.deliver_order_event.delay') as mock_delay:
			self.assertEqual(redeliver_pending_events(older_than=3600), 0)
			self.assertEqual(redeliver_pending_events(older_than=0), 1)
		self.assertEqual(mock_delay.call_count, 1)


class DeliverOrderEventTests(TestCase):
	def setUp(self):
		self.event = OrderEvent.objects.create(
			groups=['user_1', 'driver_2'], payload={'type': 'offer_closed', 'order_id': 5}
		)

	@patch('realtime.tasks.get_channel_layer')
	def test_task_fans_out_and_marks_delivered(self, mock_layer):
		mock_layer.return_value.group_send = AsyncMock()

		sent = deliver_order_event.apply(args=(self.event.id,)).get()

		self.assertEqual(sent, 2)
		self.assertEqual(mock_layer.return_value.group_send.await_count, 2)
		self.event.refresh_from_db()
		self.assertIsNotNone(self.event.delivered_at)
		self.assertEqual(self.event.attempts, 1)

	@patch('realtime.tasks.get_channel_layer')
	def test_delivered_event_is_not_sent_again(self, mock_layer):
		mock_layer.return_value.group_send = AsyncMock()
		OrderEvent.objects.filter(pk=self.event.pk).update(delivered_at=timezone.now())

		self.assertEqual(deliver_order_event.apply(args=(self.event.id,)).get(), 0)
		mock_layer.return_value.group_send.assert_not_awaited()

	@patch('realtime.tasks.get_channel_layer')
	def test_failed_send_is_recorded_and_left_pending(self, mock_layer):
		mock_layer.return_value.group_send = AsyncMock(side_effect=ConnectionError('redis down'))

		# Runs the task body once, without celery's retry loop
		with self.assertRaises(ConnectionError):
			deliver_order_event.run(self.event.id)

		self.event.refresh_from_db()
		self.assertIsNone(self.event.delivered_at)
		self.assertEqual(self.event.attempts, 1)
		self.assertIn('redis down', self.event.last_error)
