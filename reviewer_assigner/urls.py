from django.urls import include, path

urlpatterns = [
    path('', include('reviewer_assigner.api.urls')),
]
