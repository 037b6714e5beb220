from django.urls import path

from .views.api import chips, leaderboard, match_result, refresh

app_name = "tipping"

urlpatterns = [
    path("leaderboard/<slug:contest_slug>/", leaderboard, name="leaderboard"),
    path("leaderboard/<slug:contest_slug>/refresh/", refresh, name="leaderboard_refresh"),
    path("chips/<slug:contest_slug>/", chips, name="chips"),
    path(
        "matches/<slug:contest_slug>/<int:number>/result/",
        match_result,
        name="match_result",
    ),
]
