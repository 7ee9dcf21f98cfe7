"""
Management command to retry products that failed to provision.
"""
from uuid import UUID

from django.core.management.base import BaseCommand, CommandError

from fulfillment.domain.errors import OrderNotFound
from fulfillment.services.retry import RetryCoordinator


class Command(BaseCommand):
    help = 'Retry provisioning of failed products'

    def add_arguments(self, parser):
        parser.add_argument(
            '--order-id',
            type=UUID,
            help='Retry only this order',
        )
        parser.add_argument(
            '--hours',
            type=int,
            default=24,
            help='Retry failures from the last N hours',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List what would be retried without provisioning',
        )

    def handle(self, *args, **options):
        order_id = options['order_id']
        hours = options['hours']
        coordinator = RetryCoordinator()

        if options['dry_run']:
            window = None if order_id else hours
            candidates = coordinator.find_retry_candidates(window_hours=window, order_id=order_id)
            if not candidates:
                self.stdout.write(self.style.SUCCESS('No failed products to retry'))
                return
            self.stdout.write(self.style.WARNING(f'{len(candidates)} failed products would be retried:'))
            for item in candidates:
                self.stdout.write(
                    f"  {item.order.order_number}  {item.product_title} (x{item.quantity}): "
                    f"{item.fulfillment_error or '-'}"
                )
            return

        if order_id:
            try:
                results = [coordinator.retry_order(order_id)]
            except OrderNotFound as e:
                raise CommandError(str(e)) from e
        else:
            self.stdout.write(f'Retrying failures from the last {hours} hours')
            results = coordinator.retry_recent_failures(window_hours=hours)

        if not results:
            self.stdout.write(self.style.SUCCESS('No failed products to retry'))
            return

        recovered = 0
        for result in results:
            style = self.style.SUCCESS if result.success else self.style.ERROR
            self.stdout.write(style(f"{result.order_id}: {result.message}"))
            recovered += result.summary.products_successful_this_run
        self.stdout.write(
            self.style.SUCCESS(f'Retried {len(results)} orders, {recovered} products recovered')
        )
