from django.urls import path
from . import views

app_name = 'receipts'

urlpatterns = [
    path('test', views.health_check, name='health_check'),
    path('settings/coefficient', views.coefficient, name='coefficient'),
    path('receipts', views.receipt_collection, name='receipt_collection'),
    path('receipts/daily/<str:day>', views.daily_receipts, name='daily_receipts'),
    path('receipts/<int:receipt_id>', views.receipt_detail, name='receipt_detail'),
    path('reports/daily/<str:day>', views.daily_report, name='daily_report'),
    path('pricing/quote', views.quote, name='quote'),
]
