from __future__ import annotations

import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils import timezone

from modules.addresses.models import Address
from modules.inventory.models import Product, ProductVariant
from modules.payments.models import PaymentMethod, PaymentMethodKind
from modules.vouchers.models import Voucher


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        addresses = self._seed_addresses()
        methods = self._seed_payment_methods()
        variants = self._seed_catalog()
        vouchers = self._seed_vouchers()

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"addresses={addresses}, "
                f"payment_methods={methods}, "
                f"variants={variants}, "
                f"vouchers={vouchers}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="staff").exists():
            User.objects.create_user("staff", password="staff123", is_staff=True)
            created += 1
        if not User.objects.filter(username="khachhang").exists():
            User.objects.create_user("khachhang", password="khachhang123")
            created += 1
        return created

    def _seed_addresses(self) -> int:
        self.stdout.write("Creating addresses...")
        customer = get_user_model().objects.get(username="khachhang")
        seed_addresses = [
            ("Nguyễn Văn An", "0901234567", "12 Lê Lợi", "Bến Nghé", "Quận 1", "TP. Hồ Chí Minh", True),
            ("Nguyễn Văn An", "0901234567", "45 Trần Phú", "Lộc Thọ", "Nha Trang", "Khánh Hòa", False),
        ]
        for full_name, phone, line, ward, district, city, is_default in seed_addresses:
            Address.objects.get_or_create(
                user=customer,
                address_line=line,
                city=city,
                defaults={
                    "full_name": full_name,
                    "phone": phone,
                    "ward": ward,
                    "district": district,
                    "is_default": is_default,
                },
            )
        self.stdout.write(self.style.SUCCESS("Creating addresses... Done!"))
        return Address.objects.alive().filter(user=customer).count()

    def _seed_payment_methods(self) -> int:
        methods = [
            ("cod", "Thanh toán khi nhận hàng", PaymentMethodKind.CASH_ON_DELIVERY),
            ("vnpay", "VNPay", PaymentMethodKind.ONLINE_GATEWAY),
        ]
        for code, name, kind in methods:
            PaymentMethod.objects.get_or_create(
                code=code, defaults={"name": name, "kind": kind}
            )
        return len(methods)

    def _seed_catalog(self) -> int:
        self.stdout.write("Creating products...")
        catalog = [
            ("Áo thun cổ tròn", Decimal("150000"), "AT", ["Trắng", "Đen"], ["S", "M", "L"]),
            ("Quần jean slim", Decimal("450000"), "QJ", ["Xanh"], ["29", "30", "31", "32"]),
            ("Áo sơ mi dài tay", Decimal("320000"), "SM", ["Trắng", "Xanh nhạt"], ["M", "L"]),
            ("Giày thể thao", Decimal("890000"), "GT", ["Đen", "Trắng"], ["40", "41", "42"]),
        ]
        count = 0
        for name, price, prefix, colors, sizes in catalog:
            product, _ = Product.objects.get_or_create(name=name, defaults={"price": price})
            for color_index, color in enumerate(colors):
                for size in sizes:
                    ProductVariant.objects.get_or_create(
                        sku=f"{prefix}-{color_index + 1}-{size}",
                        defaults={
                            "product": product,
                            "color": color,
                            "size": size,
                            "stock_quantity": random.randint(0, 50),
                        },
                    )
                    count += 1
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return count

    def _seed_vouchers(self) -> int:
        now = timezone.now()
        Voucher.objects.get_or_create(
            code="GIAM10",
            defaults={
                "discount_percent": 10,
                "minimum_order_value": Decimal("200000"),
                "maximum_discount_amount": Decimal("100000"),
                "start_date": now - timedelta(days=1),
                "end_date": now + timedelta(days=30),
            },
        )
        Voucher.objects.get_or_create(
            code="CHAOBAN",
            defaults={
                "discount_percent": 15,
                "maximum_discount_amount": Decimal("50000"),
                "is_one_time_per_user": True,
                "start_date": now - timedelta(days=1),
                "end_date": now + timedelta(days=30),
            },
        )
        return 2
