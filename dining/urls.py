from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import dashboard, views, views_api

# ==============================================================================
# DRF ROUTER
# ==============================================================================
router = DefaultRouter()
router.register(r'opening-hours', views_api.OpeningHoursViewSet, basename='opening-hours')

# ==============================================================================
# URL PATTERNS
# ==============================================================================
app_name = 'dining'

urlpatterns = [
    # --------------------------------------------------------------------------
    # PUBLIC PAGES
    # --------------------------------------------------------------------------
    path('', views.HomeView.as_view(), name='home'),
    path('menu/', views.MenuView.as_view(), name='menu'),
    path('about/', views.AboutView.as_view(), name='about'),
    path('contact/', views.ContactView.as_view(), name='contact'),
    path('legal/', views.LegalNoticeView.as_view(), name='legal'),
    path('privacy/', views.PrivacyPolicyView.as_view(), name='privacy'),
    path('terms/', views.TermsView.as_view(), name='terms'),

    # --------------------------------------------------------------------------
    # RESERVATION WIZARD
    # --------------------------------------------------------------------------
    path('reservations/', views.ReservationDateView.as_view(), name='reservations'),
    path('reservations/confirmed/', views.ReservationConfirmedView.as_view(), name='reservation-confirmed'),
    path('reservations/<str:date>/', views.ReservationTimeView.as_view(), name='reservation-time'),
    path('reservations/<str:date>/<str:time>/', views.ReservationDetailsView.as_view(), name='reservation-details'),

    # --------------------------------------------------------------------------
    # STAFF AUTH & DASHBOARD
    # --------------------------------------------------------------------------
    path('admin/login/', views.LoginView.as_view(), name='login'),
    path('admin/logout/', views.LogoutView.as_view(), name='logout'),
    path('admin/dashboard/', dashboard.DashboardView.as_view(), name='dashboard'),

    path('admin/reservations/create/', dashboard.reservation_create, name='reservation-create'),
    path('admin/reservations/<int:pk>/toggle/', dashboard.reservation_toggle, name='reservation-toggle'),
    path('admin/reservations/<int:pk>/delete/', dashboard.reservation_delete, name='reservation-delete'),

    path('admin/menu/create/', dashboard.menu_item_create, name='menu-create'),
    path('admin/menu/<int:pk>/update/', dashboard.menu_item_update, name='menu-update'),
    path('admin/menu/<int:pk>/delete/', dashboard.menu_item_delete, name='menu-delete'),
    path('admin/menu/<int:pk>/toggle/', dashboard.menu_item_toggle, name='menu-toggle'),

    path('admin/hours/', dashboard.opening_hours_update, name='hours-update'),
    path('admin/settings/<int:pk>/', dashboard.setting_update, name='setting-update'),

    # --------------------------------------------------------------------------
    # JSON API
    # --------------------------------------------------------------------------
    path('api/v1/availability/', views_api.AvailabilityAPIView.as_view(), name='api-availability'),
    path('api/v1/', include(router.urls)),
]
