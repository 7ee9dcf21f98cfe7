"""
Management command to provision the items of one order.
"""
import json
from uuid import UUID

from django.core.management.base import BaseCommand, CommandError

from fulfillment.domain.errors import OrderNotFound
from fulfillment.services.orchestrator import ProvisioningOrchestrator


class Command(BaseCommand):
    help = 'Provision the pending and failed products of an order'

    def add_arguments(self, parser):
        parser.add_argument('order_id', type=UUID, help='Order to provision')
        parser.add_argument(
            '--json',
            action='store_true',
            help='Print the full result as JSON',
        )

    def handle(self, *args, **options):
        try:
            result = ProvisioningOrchestrator().process_order(options['order_id'])
        except OrderNotFound as e:
            raise CommandError(str(e)) from e

        if options['json']:
            self.stdout.write(json.dumps(result.as_dict(), indent=2, default=str))
            return

        style = self.style.SUCCESS if result.success else self.style.ERROR
        self.stdout.write(style(result.message))
        for detail in result.product_details:
            line = f"  {detail['status']:<8} {detail['product_title']} (x{detail['quantity']})"
            if detail['status'] == 'success':
                line += f" -> {detail.get('subscription_id')}"
            else:
                line += f": {detail.get('error_message')}"
            self.stdout.write(line)
        self.stdout.write(
            f"Order status: {result.order_status} / {result.fulfillment_status}"
        )
