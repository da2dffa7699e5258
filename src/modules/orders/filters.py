import django_filters

from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.models import Order
from modules.payments.models import PaymentMethodKind


class OrderFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=OrderStatus.choices)
    payment_status = django_filters.ChoiceFilter(choices=PaymentStatus.choices)
    payment_method_kind = django_filters.ChoiceFilter(choices=PaymentMethodKind.choices)
    order_number = django_filters.CharFilter(lookup_expr="iexact")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    min_total = django_filters.NumberFilter(field_name="final_total", lookup_expr="gte")
    max_total = django_filters.NumberFilter(field_name="final_total", lookup_expr="lte")

    class Meta:
        model = Order
        fields = [
            "status",
            "payment_status",
            "payment_method_kind",
            "order_number",
            "start_date",
            "end_date",
            "min_total",
            "max_total",
        ]
