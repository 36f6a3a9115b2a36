"""
Tests for receipts views.
"""
import json
from datetime import datetime, timezone
from unittest.mock import patch

from django.test import TestCase, Client
from django.urls import reverse

from core.errors import StoreError, errmsg
from receipts import services
from receipts.models import Receipt, ReceiptItem


class JSONClientMixin:

    def setUp(self):
        self.client = Client()

    def post_json(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type='application/json')

    def put_json(self, url, payload):
        return self.client.put(url, data=json.dumps(payload), content_type='application/json')


class HealthCheckViewTests(JSONClientMixin, TestCase):
    """Tests for GET /api/test."""

    def test_ok(self):
        response = self.client.get('/api/test')

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'ok')
        self.assertEqual(data['database'], 'connected')
        self.assertEqual(data['environment'], 'development')
        self.assertIn('timestamp', data)
        self.assertIn('message', data)
        self.assertGreaterEqual(data['uptime'], 0)

    @patch('receipts.views.services.check_database')
    def test_database_failure_returns_500(self, mock_check):
        mock_check.side_effect = StoreError('Database connection failed: disk I/O error')

        response = self.client.get(reverse('receipts:health_check'))

        self.assertEqual(response.status_code, 500)
        data = response.json()
        self.assertEqual(data['status'], 'error')
        self.assertIn('disk I/O error', data['error'])


class CoefficientViewTests(JSONClientMixin, TestCase):
    """Tests for /api/settings/coefficient."""

    def setUp(self):
        super().setUp()
        self.url = reverse('receipts:coefficient')

    def test_get_default(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'coefficient': 2.3})

    def test_put_updates(self):
        response = self.put_json(self.url, {'coefficient': 2.6})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'success': True, 'coefficient': 2.6})
        self.assertEqual(self.client.get(self.url).json(), {'coefficient': 2.6})

    def test_put_zero_rejected(self):
        response = self.put_json(self.url, {'coefficient': 0})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': errmsg.COEFFICIENT_NOT_POSITIVE})
        self.assertEqual(services.get_base_coefficient(), 2.3)

    def test_put_oversized_rejected(self):
        response = self.put_json(self.url, {'coefficient': 1e300})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': errmsg.COEFFICIENT_TOO_LARGE})

    def test_put_missing_rejected(self):
        response = self.put_json(self.url, {})
        self.assertEqual(response.status_code, 400)

    def test_put_invalid_json_rejected(self):
        response = self.client.put(self.url, data='{not json', content_type='application/json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': errmsg.INVALID_JSON})

    def test_post_not_allowed(self):
        response = self.post_json(self.url, {'coefficient': 2.6})
        self.assertEqual(response.status_code, 405)


class ReceiptCollectionViewTests(JSONClientMixin, TestCase):
    """Tests for /api/receipts."""

    def setUp(self):
        super().setUp()
        self.url = reverse('receipts:receipt_collection')

    def test_create_receipt(self):
        response = self.post_json(self.url, {
            'receipt_number': 'A-17',
            'items': [{'percentage': 20, 'weight': 10, 'coefficient': 2.3, 'sum': 460}],
        })

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['success'])
        self.assertIn('message', data)
        receipt = Receipt.objects.get(pk=data['receiptId'])
        self.assertEqual(receipt.receipt_number, 'A-17')
        self.assertEqual(receipt.total_sum, 460)

    def test_create_without_items_rejected(self):
        response = self.post_json(self.url, {'receipt_number': 'A-17', 'items': []})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': errmsg.NO_ITEMS})
        self.assertEqual(Receipt.objects.count(), 0)

    def test_create_with_bad_percentage_rejected(self):
        response = self.post_json(self.url, {'items': [{'percentage': 5, 'weight': 1}]})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': errmsg.INVALID_PERCENTAGE})

    def test_create_with_huge_weight_rejected(self):
        """A weight too large for an integer sum is a 400, and nothing is saved."""
        response = self.post_json(self.url, {
            'items': [{'percentage': 100, 'weight': 1e300, 'coefficient': 2.3}],
        })

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': errmsg.WEIGHT_TOO_LARGE})
        self.assertEqual(Receipt.objects.count(), 0)

    def test_create_store_failure_returns_500(self):
        with patch('receipts.views.services.create_receipt',
                   side_effect=StoreError('Failed to save receipt: boom')):
            response = self.post_json(self.url, {'items': [{'percentage': 20, 'weight': 1}]})

        self.assertEqual(response.status_code, 500)
        self.assertIn('boom', response.json()['error'])

    def test_list_receipts(self):
        services.create_receipt(items=[
            {'percentage': 30, 'weight': 2.5, 'coefficient': 2.3},
            {'percentage': 20, 'weight': 10, 'coefficient': 2.3},
        ])

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data), 1)
        receipt = data[0]
        self.assertEqual(receipt['total_weight'], 12.5)
        self.assertEqual(receipt['total_sum'], 632)
        self.assertIsNone(receipt['receipt_number'])
        self.assertIn('created_at', receipt)
        self.assertEqual([i['percentage'] for i in receipt['items']], [20, 30])
        self.assertEqual(receipt['items'][0]['receipt_id'], receipt['id'])
        self.assertEqual(receipt['items'][0]['sum'], 460)

    def test_list_twice_is_identical(self):
        services.create_receipt(items=[{'percentage': 20, 'weight': 1, 'coefficient': 2.3}])
        services.create_receipt(items=[{'percentage': 40, 'weight': 2, 'coefficient': 2.5}])

        self.assertEqual(self.client.get(self.url).json(), self.client.get(self.url).json())


class ReceiptDetailViewTests(JSONClientMixin, TestCase):
    """Tests for /api/receipts/<id>."""

    def setUp(self):
        super().setUp()
        self.receipt = services.create_receipt(
            items=[{'percentage': 20, 'weight': 10, 'coefficient': 2.3}]
        )
        self.url = reverse('receipts:receipt_detail', args=[self.receipt.pk])

    def test_get_receipt(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['id'], self.receipt.pk)
        self.assertEqual(data['items'][0]['sum'], 460)

    def test_delete_receipt(self):
        response = self.client.delete(self.url)

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])
        self.assertEqual(Receipt.objects.count(), 0)
        self.assertEqual(ReceiptItem.objects.count(), 0)

    def test_delete_missing_returns_404(self):
        self.client.delete(self.url)

        response = self.client.delete(self.url)

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {'error': errmsg.RECEIPT_NOT_FOUND})

    def test_get_missing_returns_404(self):
        response = self.client.get(reverse('receipts:receipt_detail', args=[99999]))
        self.assertEqual(response.status_code, 404)


class DailyViewsTests(JSONClientMixin, TestCase):
    """Tests for the per-day receipt listing and report."""

    def _create(self, items, when):
        receipt = services.create_receipt(items=items)
        Receipt.objects.filter(pk=receipt.pk).update(created_at=when)
        return receipt

    def setUp(self):
        super().setUp()
        self.first = self._create(
            [{'percentage': 20, 'weight': 5, 'coefficient': 2.3}],
            datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc),
        )
        self.second = self._create(
            [
                {'percentage': 20, 'weight': 5, 'coefficient': 2.5},
                {'percentage': 20, 'weight': 3, 'coefficient': 2.3},
            ],
            datetime(2024, 3, 15, 11, 0, tzinfo=timezone.utc),
        )
        self._create(
            [{'percentage': 50, 'weight': 1, 'coefficient': 2.3}],
            datetime(2024, 3, 16, 12, 0, tzinfo=timezone.utc),
        )

    def test_daily_receipts(self):
        response = self.client.get(reverse('receipts:daily_receipts', args=['2024-03-15']))

        self.assertEqual(response.status_code, 200)
        self.assertEqual([r['id'] for r in response.json()], [self.first.pk, self.second.pk])

    def test_daily_report(self):
        response = self.client.get(reverse('receipts:daily_report', args=['2024-03-15']))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['date'], '2024-03-15')
        self.assertEqual(data['count'], 2)
        self.assertEqual(data['totalWeight'], 13)
        self.assertEqual(data['totalSum'], 618)
        self.assertEqual(len(data['receipts']), 2)
        self.assertEqual(
            [(g['percentage'], g['coefficient']) for g in data['groups']],
            [(20, 2.3), (20, 2.5)],
        )
        merged = data['groups'][0]
        self.assertEqual(merged['totalWeight'], 8)
        self.assertEqual(merged['totalSum'], 368)
        self.assertEqual(merged['count'], 2)
        self.assertEqual(merged['transactions'], [{'weight': 5, 'sum': 230}, {'weight': 3, 'sum': 138}])

    def test_daily_report_empty_day(self):
        response = self.client.get(reverse('receipts:daily_report', args=['2024-01-01']))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {
            'date': '2024-01-01',
            'receipts': [],
            'totalWeight': 0,
            'totalSum': 0,
            'count': 0,
            'groups': [],
        })

    def test_bad_date_rejected(self):
        for value in ('yesterday', '2024-02-30'):
            with self.subTest(value=value):
                response = self.client.get(reverse('receipts:daily_report', args=[value]))
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json(), {'error': errmsg.INVALID_DATE})


class QuoteViewTests(JSONClientMixin, TestCase):
    """Tests for POST /api/pricing/quote."""

    def setUp(self):
        super().setUp()
        self.url = reverse('receipts:quote')

    def test_quote(self):
        response = self.post_json(self.url, {
            'weights': {'20': 10, '25': 2, '30': 0},
            'coefficients': {'25': 3},
        })

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['baseCoefficient'], 2.3)
        self.assertEqual(data['items'], [
            {'percentage': 20, 'weight': 10.0, 'coefficient': 2.3, 'sum': 460},
            {'percentage': 25, 'weight': 2.0, 'coefficient': 3.0, 'sum': 150},
        ])
        self.assertEqual(data['totalWeight'], 12)
        self.assertEqual(data['totalSum'], 610)
        self.assertEqual(Receipt.objects.count(), 0)

    def test_quote_bad_bracket(self):
        response = self.post_json(self.url, {'weights': {'200': 1}})
        self.assertEqual(response.status_code, 400)

    def test_quote_huge_weight_rejected(self):
        response = self.post_json(self.url, {'weights': {'20': '9e999999'}})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': errmsg.WEIGHT_TOO_LARGE})

    def test_quote_coefficients_list_rejected(self):
        response = self.post_json(self.url, {'weights': {'20': 1}, 'coefficients': [3]})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': errmsg.INVALID_COEFFICIENTS})
