import csv
import logging

from django.contrib.auth import get_user_model
from django.db import DatabaseError, connection
from django.db.models import Q
from django.http import HttpResponse
from rest_framework import generics, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework_simplejwt.views import TokenObtainPairView

from common.audit import AuditedMutationMixin
from common.filters import filter_date_range
from common.permissions import RoleCapabilityPermission
from core.models import AuditLog
from core.serializers import AuditLogSerializer, LoginTokenObtainPairSerializer, MeSerializer, UserSerializer

User = get_user_model()
logger = logging.getLogger(__name__)

AUDIT_EXPORT_COLUMNS = ["id", "created_at", "actor", "action", "entity", "entity_id", "request_id"]


class LoginTokenObtainPairView(TokenObtainPairView):
    serializer_class = LoginTokenObtainPairSerializer
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "auth"


class MeView(generics.RetrieveAPIView):
    """The signed-in account plus the flags the client uses to pick screens."""

    serializer_class = MeSerializer
    permission_classes = [IsAuthenticated]

    def get_object(self):
        return self.request.user


class UserViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = User.objects.order_by("username")
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = dict.fromkeys(
        ["list", "retrieve", "create", "update", "partial_update", "destroy"], "settings.manage"
    )
    audit_entity = "user"

    def get_queryset(self):
        qs = self.queryset
        role = self.request.query_params.get("role")
        if role:
            qs = qs.filter(role=role)
        search = self.request.query_params.get("q")
        if search:
            qs = qs.filter(Q(username__icontains=search) | Q(email__icontains=search) | Q(phone__icontains=search))
        return qs

    def perform_destroy(self, instance):
        if instance.pk == self.request.user.pk:
            raise ValidationError("You cannot delete your own account.")
        super().perform_destroy(instance)


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AuditLog.objects.select_related("actor").order_by("-created_at")
    serializer_class = AuditLogSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = dict.fromkeys(["list", "retrieve", "export"], "settings.manage")

    def get_queryset(self):
        params = self.request.query_params
        qs = self.queryset
        for param, lookup in (("actor", "actor_id"), ("action", "action"), ("entity", "entity")):
            if params.get(param):
                qs = qs.filter(**{lookup: params[param]})
        return filter_date_range(qs, self.request, "created_at__date")

    @action(detail=False, methods=["get"], url_path="export")
    def export(self, request):
        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = 'attachment; filename="audit-logs.csv"'

        writer = csv.writer(response)
        writer.writerow(AUDIT_EXPORT_COLUMNS)
        writer.writerows(
            [
                log.id,
                log.created_at.isoformat(),
                getattr(log.actor, "username", ""),
                log.action,
                log.entity,
                log.entity_id,
                log.request_id,
            ]
            for log in self.get_queryset()
        )
        return response


@api_view(["GET"])
@permission_classes([AllowAny])
def healthz(request):
    return Response({"status": "ok", "request_id": getattr(request, "request_id", None)})


@api_view(["GET"])
@permission_classes([AllowAny])
def readyz(request):
    request_id = getattr(request, "request_id", None)
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError:
        logger.exception("readiness_check_failed")
        return Response(
            {"status": "unavailable", "request_id": request_id},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return Response({"status": "ready", "request_id": request_id})
