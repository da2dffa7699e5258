"""Fill ``address_snapshot`` on orders created before snapshots existed.

The snapshot is copied from the linked address row even when that row is
soft-deleted, and its ``captured_at`` is the order's ``created_at``. Orders
whose address row is gone, or whose address lacks a required field (name,
phone, street or city), are listed for manual review and left untouched;
no address is ever made up.
"""

from __future__ import annotations

import structlog
from django.core.management.base import BaseCommand
from django.db import transaction
from pydantic import ValidationError

from modules.addresses.repositories.django_repository import AddressDjangoRepository
from modules.addresses.services import snapshot_from_address
from modules.orders.repositories.django_repository import OrderDjangoRepository

logger = structlog.get_logger(__name__)


class Command(BaseCommand):
    help = "Backfill address snapshots for orders that have none."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report what would change without writing.",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        order_repo = OrderDjangoRepository()
        address_repo = AddressDjangoRepository()

        filled = 0
        needs_review = []
        for order in order_repo.missing_address_snapshot().iterator():
            address = (
                address_repo.get_including_deleted(order.address_id)
                if order.address_id
                else None
            )
            if address is None:
                needs_review.append(order.order_number)
                logger.warning(
                    "order.snapshot_backfill_unresolved",
                    order_id=str(order.id),
                    order_number=order.order_number,
                    reason="address_missing",
                )
                continue

            try:
                snapshot = snapshot_from_address(address, captured_at=order.created_at)
            except ValidationError as exc:
                needs_review.append(order.order_number)
                logger.warning(
                    "order.snapshot_backfill_unresolved",
                    order_id=str(order.id),
                    order_number=order.order_number,
                    reason="address_incomplete",
                    fields=[".".join(map(str, err["loc"])) for err in exc.errors()],
                )
                continue

            if not dry_run:
                with transaction.atomic():
                    order.address_snapshot = snapshot.to_storage()
                    order.save(update_fields=["address_snapshot"])
                logger.info(
                    "order.snapshot_backfilled",
                    order_id=str(order.id),
                    address_id=str(address.id),
                    address_deleted=address.is_deleted,
                )
            filled += 1

        verb = "Would backfill" if dry_run else "Backfilled"
        self.stdout.write(self.style.SUCCESS(f"{verb} {filled} order(s)."))
        if needs_review:
            self.stdout.write(
                self.style.WARNING(
                    f"{len(needs_review)} order(s) need manual review: "
                    + ", ".join(needs_review)
                )
            )
