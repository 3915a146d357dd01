from django.urls import include, path

urlpatterns = [
    path("", include("cashcards.urls")),
]
