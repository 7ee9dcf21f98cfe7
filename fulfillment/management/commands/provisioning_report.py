"""
Management command to print provisioning statistics.
"""
import json
from uuid import UUID

from django.core.management.base import BaseCommand, CommandError

from fulfillment.domain.errors import OrderNotFound
from fulfillment.services.reporting import ProvisioningReportService


class Command(BaseCommand):
    help = 'Generate provisioning success/failure report'

    def add_arguments(self, parser):
        parser.add_argument(
            '--order-id',
            type=UUID,
            help='Report on a single order',
        )
        parser.add_argument(
            '--days',
            type=int,
            default=7,
            help='Number of days to look back',
        )
        parser.add_argument(
            '--format',
            choices=('table', 'json'),
            default='table',
            help='Output format',
        )

    def handle(self, *args, **options):
        service = ProvisioningReportService()
        order_id = options['order_id']

        if order_id:
            try:
                report = service.order_report(order_id)
            except OrderNotFound as e:
                raise CommandError(str(e)) from e
        else:
            report = service.overall_report(days=options['days'])

        if options['format'] == 'json':
            self.stdout.write(json.dumps(report, indent=2, default=str))
        elif order_id:
            self._write_order(report)
        else:
            self._write_overall(report)

    def _write_order(self, report):
        summary = report['summary']
        self.stdout.write(self.style.MIGRATE_HEADING(f"Order {report['order_number']}"))
        self.stdout.write(f"Customer: {report['customer_name'] or 'N/A'} ({report['customer_email'] or 'N/A'})")
        self.stdout.write(f"Account domain: {report['remote_domain'] or 'N/A'}")
        self.stdout.write(f"Total: {report['total_amount']} {report['currency']}")
        self.stdout.write(f"Status: {report['order_status']} / {report['fulfillment_status']}")
        self.stdout.write(
            f"Products: {summary['total']} total, {summary['fulfilled']} fulfilled, "
            f"{summary['failed']} failed, {summary['pending']} pending, "
            f"{summary['processing']} processing"
        )
        self.stdout.write('')
        self._write_table(
            ('Product', 'SKU', 'Qty', 'Status', 'Error'),
            [
                (
                    item['product_title'][:30],
                    item['sku_id'],
                    item['quantity'],
                    item['status'],
                    (item['error'] or '-')[:40],
                )
                for item in report['items']
            ],
        )
        for item in report['items']:
            if item['status'] == 'failed':
                self.stdout.write(self.style.WARNING(
                    f"{item['product_title']} ({item['sku_id']}): [{item['error_category']}] {item['error']}"
                ))

    def _write_overall(self, report):
        self.stdout.write(self.style.MIGRATE_HEADING(
            f"Last {report['days']} days (from {report['since']:%Y-%m-%d})"
        ))
        self.stdout.write(f"Orders: {report['total_orders']}")
        self.stdout.write(f"Products attempted: {report['total_products']}")
        self.stdout.write(self.style.SUCCESS(f"Success rate: {report['success_rate']:.1f}%"))
        self.stdout.write(self.style.ERROR(f"Failure rate: {report['failure_rate']:.1f}%"))

        if report['order_breakdown']:
            self.stdout.write('')
            self._write_table(
                ('Status', 'Count', 'Percentage'),
                [
                    (row['fulfillment_status'], row['count'], f"{row['percentage']:.1f}%")
                    for row in report['order_breakdown']
                ],
            )
        if report['product_stats']:
            self.stdout.write('')
            self.stdout.write('Top products by attempts (min 3 attempts):')
            self._write_table(
                ('Product', 'SKU', 'Total', 'Success', 'Failed', 'Rate'),
                [
                    (
                        row['product_title'][:25],
                        row['sku_id'],
                        row['total_attempts'],
                        row['successful'],
                        row['failed'],
                        f"{row['success_rate']:.1f}%",
                    )
                    for row in report['product_stats']
                ],
            )
        if report['recent_failures']:
            self.stdout.write('')
            self.stdout.write(self.style.WARNING('Recent failures:'))
            self._write_table(
                ('Order', 'Product', 'Error', 'When'),
                [
                    (
                        row['order_number'],
                        row['product_title'][:20],
                        (row['error'] or '-')[:40],
                        f"{row['updated_at']:%Y-%m-%d %H:%M}",
                    )
                    for row in report['recent_failures']
                ],
            )
        if report['common_errors']:
            self.stdout.write('')
            self.stdout.write(self.style.WARNING('Most common errors:'))
            self._write_table(
                ('Error type', 'Count', 'Example'),
                [
                    (row['category'], row['count'], row['example'][:50])
                    for row in report['common_errors']
                ],
            )

    def _write_table(self, headers, rows):
        rows = [tuple(str(value) for value in row) for row in rows]
        widths = [
            max([len(header)] + [len(row[i]) for row in rows])
            for i, header in enumerate(headers)
        ]
        self.stdout.write('  '.join(h.ljust(w) for h, w in zip(headers, widths)))
        self.stdout.write('  '.join('-' * w for w in widths))
        for row in rows:
            self.stdout.write('  '.join(v.ljust(w) for v, w in zip(row, widths)))
