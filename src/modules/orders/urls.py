from rest_framework.routers import SimpleRouter

from modules.orders.views import OrderViewSet

# /orders/, /orders/{id}/, /orders/{id}/cancel/, /orders/{id}/status/,
# /orders/{id}/payment-status/
router = SimpleRouter()
router.register("orders", OrderViewSet, basename="order")

urlpatterns = router.urls
