from django.urls import path

from elections import views_elections, views_results, views_votes

urlpatterns = [
    path("elections/", views_elections.elections_collection, name="api-elections"),
    path("elections/<int:election_id>/", views_elections.election_item, name="api-election-detail"),
    path("elections/<int:election_id>/start/", views_elections.election_start, name="api-election-start"),
    path("elections/<int:election_id>/close/", views_elections.election_close, name="api-election-close"),
    path("elections/<int:election_id>/publish/", views_elections.election_publish, name="api-election-publish"),
    path("elections/<int:election_id>/can-vote/", views_elections.election_can_vote, name="api-election-can-vote"),
    path("elections/<int:election_id>/vote/", views_votes.vote_cast, name="api-election-vote"),
    path("elections/<int:election_id>/my-vote/", views_votes.my_vote, name="api-election-my-vote"),
    path("elections/<int:election_id>/vote-count/", views_votes.vote_count, name="api-election-vote-count"),
    path("elections/<int:election_id>/votes/", views_votes.election_votes, name="api-election-votes"),
    path("elections/<int:election_id>/results/", views_results.election_results, name="api-election-results"),
    path(
        "elections/<int:election_id>/results/preview/",
        views_results.results_preview,
        name="api-election-results-preview",
    ),
    path(
        "elections/<int:election_id>/results/calculate/",
        views_results.results_calculate,
        name="api-election-results-calculate",
    ),
    path("elections/<int:election_id>/stats/", views_results.election_stats, name="api-election-stats"),
    path("votes/my-votes/", views_votes.my_votes, name="api-my-votes"),
    path("votes/<int:vote_id>/", views_votes.vote_detail, name="api-vote-detail"),
]
