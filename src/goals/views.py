"""API views for the goals module."""
from __future__ import annotations

import logging

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from api.v1.pagination import StandardResultsSetPagination
from api.v1.permissions import IsManagerOrAdminOrReadOnly
from goals.engine import GoalTracker
from goals.models import SalespersonGoal
from goals.serializers import GoalProgressSerializer, SalespersonGoalSerializer

logger = logging.getLogger(__name__)

GOAL_MANAGER_ROLES = ("ADMIN", "MANAGER", "FINANCE")


class SalespersonGoalViewSet(viewsets.ModelViewSet):
    """
    Salesperson goals.

    - list / retrieve: salespeople only see their own goals
    - create / update / delete: managers and admins
    - progress: stored figures against targets
    - refresh: recompute figures from completed sales
    """

    serializer_class = SalespersonGoalSerializer
    queryset = SalespersonGoal.objects.select_related("user")
    filterset_fields = ["user", "period_start", "period_end"]
    ordering_fields = ["period_start", "period_end", "current_revenue"]
    pagination_class = StandardResultsSetPagination
    permission_classes = [IsManagerOrAdminOrReadOnly]

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if not (user.is_superuser or user.role in GOAL_MANAGER_ROLES):
            qs = qs.filter(user=user)
        return qs

    def perform_create(self, serializer):
        goal = serializer.save()
        GoalTracker().refresh_goal(goal)
        logger.info("Goal %s created for user=%s", goal.pk, goal.user_id)

    def perform_update(self, serializer):
        goal = serializer.save()
        GoalTracker().refresh_goal(goal)

    @action(detail=True, methods=["get"], url_path="progress")
    def progress(self, request, pk=None):
        goal = self.get_object()
        progress = GoalTracker().progress(goal)
        return Response(GoalProgressSerializer(progress.as_dict()).data)

    @action(detail=True, methods=["post"], url_path="refresh")
    def refresh(self, request, pk=None):
        """Recompute the goal's figures now and return its progress."""
        goal = self.get_object()
        progress = GoalTracker().refresh_goal(goal)
        return Response(GoalProgressSerializer(progress.as_dict()).data)
