"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into HTTP status codes with a
``{"detail", "code", ...}`` body; the view never swallows generic exceptions.
"""

from __future__ import annotations

import structlog
from django.db import IntegrityError
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.addresses.repositories.django_repository import AddressDjangoRepository
from modules.addresses.services import AddressSnapshotService
from modules.core.pagination import StandardResultsSetPagination
from modules.inventory.repositories.django_repository import (
    StockLedgerDjangoRepository,
    VariantDjangoRepository,
)
from modules.orders.constants import Actor
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, QuoteOrderDTO
from modules.orders.exceptions import (
    AddressNotFound,
    IdempotencyKeyReused,
    InactiveVariant,
    InsufficientStock,
    OrderNotFound,
    PaymentMethodNotFound,
    PaymentStatusNotAdminControlled,
    TransitionError,
    VariantNotFound,
    VoucherNotApplicable,
    VoucherNotFound,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CancelOrderSerializer,
    ChangePaymentStatusSerializer,
    ChangeStatusSerializer,
    CreateOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
    QuoteOrderSerializer,
)
from modules.orders.services import OrderService
from modules.payments.repositories.django_repository import (
    PaymentMethodDjangoRepository,
)
from modules.vouchers.repositories.django_repository import VoucherDjangoRepository

logger = structlog.get_logger(__name__)

NOT_FOUND_ERRORS = (
    OrderNotFound,
    AddressNotFound,
    VariantNotFound,
    PaymentMethodNotFound,
    VoucherNotFound,
)


def _error(exc: Exception, http_status: int, **extra) -> Response:
    body = {"detail": str(exc), "code": exc.code}
    body.update(extra)
    return Response(body, status=http_status)


def _transition_error(exc: TransitionError) -> Response:
    if isinstance(exc, PaymentStatusNotAdminControlled):
        return _error(exc, status.HTTP_403_FORBIDDEN, **exc.context())
    return _error(exc, status.HTTP_409_CONFLICT, **exc.context())


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with injected repositories (DIP).
    Does **not** extend ``ModelViewSet``; all ORM access goes through
    the service/repository layer.

    Staff users see and manage every order; customers only their own.
    """

    queryset = Order.objects.none()
    serializer_class = OrderSerializer
    pagination_class = StandardResultsSetPagination
    filterset_class = OrderFilter
    search_fields = ["order_number", "user__username"]
    ordering_fields = ["created_at", "final_total", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderService(
            order_repository=OrderDjangoRepository(),
            variant_repository=VariantDjangoRepository(),
            stock_ledger=StockLedgerDjangoRepository(),
            address_snapshot_service=AddressSnapshotService(AddressDjangoRepository()),
            payment_method_repository=PaymentMethodDjangoRepository(),
            voucher_repository=VoucherDjangoRepository(),
        )

    def get_throttles(self) -> list[BaseThrottle]:
        """Throttle scopes per action."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_serializer_context(self) -> dict:
        context = super().get_serializer_context()
        context["order_service"] = self._service
        return context

    def _actor(self, request: Request) -> str:
        return Actor.ADMIN if request.user.is_staff else Actor.CUSTOMER

    def _visible_to(self, request: Request) -> int | None:
        return None if request.user.is_staff else request.user.id

    def _detail(self, order: Order, http_status: int = status.HTTP_200_OK) -> Response:
        serializer = OrderSerializer(order, context=self.get_serializer_context())
        return Response(serializer.data, status=http_status)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        Returns 200 if the key was already used, 201 for new orders.
        """
        create_serializer = CreateOrderSerializer(data=request.data)
        create_serializer.is_valid(raise_exception=True)

        data = create_serializer.validated_data
        idempotency_key = request.headers.get("Idempotency-Key") or None
        dto = CreateOrderDTO(
            user_id=request.user.id,
            items=[
                CreateOrderItemDTO(
                    variant_id=item["variant_id"],
                    quantity=item["quantity"],
                )
                for item in data["items"]
            ],
            address_id=data["address_id"],
            payment_method_id=data["payment_method_id"],
            voucher_id=data.get("voucher_id"),
            notes=data.get("notes", ""),
            idempotency_key=idempotency_key,
        )

        try:
            order, created = self._service.create_or_replay(dto)
        except InsufficientStock as exc:
            return _error(
                exc,
                status.HTTP_409_CONFLICT,
                variant_id=exc.variant_id,
                requested=exc.requested,
                available=exc.available,
            )
        except IdempotencyKeyReused as exc:
            return _error(exc, status.HTTP_409_CONFLICT)
        except NOT_FOUND_ERRORS as exc:
            return _error(exc, status.HTTP_404_NOT_FOUND)
        except InactiveVariant as exc:
            return _error(exc, status.HTTP_400_BAD_REQUEST, variant_id=exc.variant_id)
        except VoucherNotApplicable as exc:
            return _error(exc, status.HTTP_400_BAD_REQUEST, reason=exc.reason)
        except IntegrityError:
            # A concurrent request with the same key won the unique constraint.
            if not idempotency_key:
                raise
            order = self._service.find_by_idempotency_key(idempotency_key, request.user.id)
            if order is None:
                raise
            logger.info("order.idempotency_race", order_id=str(order.id))
            created = False

        return self._detail(
            order, status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Order.objects.none()
        return self._service.list_orders(user_id=self._visible_to(self.request))

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering (status, payment status, date range, total range) is
        handled by ``OrderFilter`` via ``filter_backends``. Results are
        paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())

        page = self.paginate_queryset(queryset)
        serializer = OrderListSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(pk, user_id=self._visible_to(request))
        except OrderNotFound as exc:
            return _error(exc, status.HTTP_404_NOT_FOUND)
        return self._detail(order)

    @action(detail=False, methods=["post"])
    def quote(self, request: Request) -> Response:
        """POST /api/v1/orders/quote/

        Prices the request like ``create`` would (lines, voucher discount,
        shipping fee) and flags lines that look out of stock. Nothing is
        reserved.
        """
        serializer = QuoteOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        dto = QuoteOrderDTO(
            user_id=request.user.id,
            items=[
                CreateOrderItemDTO(variant_id=item["variant_id"], quantity=item["quantity"])
                for item in data["items"]
            ],
            address_id=data["address_id"],
            voucher_id=data.get("voucher_id"),
        )

        try:
            quote = self._service.quote_order(dto)
        except NOT_FOUND_ERRORS as exc:
            return _error(exc, status.HTTP_404_NOT_FOUND)
        except InactiveVariant as exc:
            return _error(exc, status.HTTP_400_BAD_REQUEST, variant_id=exc.variant_id)
        except VoucherNotApplicable as exc:
            return _error(exc, status.HTTP_400_BAD_REQUEST, reason=exc.reason)
        return Response(quote.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Lifecycle actions
    # ------------------------------------------------------------------

    @action(detail=True, methods=["patch"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/cancel/

        Cancels a pending or processing order and releases its stock.
        Customers may cancel their own orders; staff any order.
        """
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.cancel_order(
                pk,
                actor=self._actor(request),
                user_id=request.user.id,
                notes=serializer.validated_data["notes"],
            )
        except OrderNotFound as exc:
            return _error(exc, status.HTTP_404_NOT_FOUND)
        except TransitionError as exc:
            return _transition_error(exc)
        return self._detail(order)

    @action(
        detail=True,
        methods=["put"],
        url_path="status",
        permission_classes=[IsAdminUser],
    )
    def change_status(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/orders/{pk}/status/"""
        serializer = ChangeStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.change_status(
                pk,
                requested_status=serializer.validated_data["status"],
                actor=Actor.ADMIN,
                user_id=request.user.id,
                notes=serializer.validated_data["notes"],
            )
        except OrderNotFound as exc:
            return _error(exc, status.HTTP_404_NOT_FOUND)
        except TransitionError as exc:
            return _transition_error(exc)
        return self._detail(order)

    @action(
        detail=True,
        methods=["put"],
        url_path="payment-status",
        permission_classes=[IsAdminUser],
    )
    def change_payment_status(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/orders/{pk}/payment-status/

        Rejected with 403 for gateway orders and for COD orders that are
        not delivered yet.
        """
        serializer = ChangePaymentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.change_payment_status(
                pk,
                requested_payment_status=serializer.validated_data["payment_status"],
                actor=Actor.ADMIN,
                user_id=request.user.id,
                notes=serializer.validated_data["notes"],
            )
        except OrderNotFound as exc:
            return _error(exc, status.HTTP_404_NOT_FOUND)
        except TransitionError as exc:
            return _transition_error(exc)
        return self._detail(order)
