"""Main API URL router for /api/v1/."""
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from api.v1 import views as v1_views
from commissions import views as commission_views
from goals import views as goal_views

app_name = 'api'

router = DefaultRouter()
router.register(r'sales', v1_views.SaleViewSet)
router.register(r'commissions', commission_views.SaleCommissionViewSet)
router.register(r'commission-rules', commission_views.CommissionRuleViewSet)
router.register(r'commission-splits', commission_views.CommissionSplitViewSet)
router.register(r'goals', goal_views.SalespersonGoalViewSet)

urlpatterns = [
    path('', include(router.urls)),

    # Auth
    path('token/', TokenObtainPairView.as_view(), name='token-obtain-pair'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
]
