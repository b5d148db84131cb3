from __future__ import annotations

from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from elections import tallying
from elections.api import api_view, success


@require_GET
@api_view
def election_results(request, election_id: int) -> JsonResponse:
    results = tallying.get_results(election_id=election_id, principal=request.principal)
    return success({"results": results.as_dict()}, "Results retrieved successfully")


@require_GET
@api_view
def results_preview(request, election_id: int) -> JsonResponse:
    results = tallying.preview_results(election_id=election_id, principal=request.principal)
    return success({"results": results.as_dict()}, "Results preview retrieved successfully")


@require_POST
@api_view
def results_calculate(request, election_id: int) -> JsonResponse:
    # Older clients publish through this route.
    tallying.publish_results(election_id=election_id, principal=request.principal)
    results = tallying.get_results(election_id=election_id, principal=request.principal)
    return success(
        {"results": results.as_dict()},
        "Results calculated and published successfully",
        status=201,
    )


@require_GET
@api_view
def election_stats(request, election_id: int) -> JsonResponse:
    stats = tallying.get_stats(election_id=election_id, principal=request.principal)
    return success({"stats": stats}, "Statistics retrieved successfully")
