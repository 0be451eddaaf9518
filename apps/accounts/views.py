from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.views import TokenObtainPairView

from apps.accounts.serializers import ChangePasswordSerializer, LogoutSerializer, UserSerializer
from apps.audit.mixins import AuditedModelMixin
from apps.audit.models import AuditAction, AuditCollection
from apps.audit.services import record_audit
from apps.common.permissions import RolePermission

User = get_user_model()


class UserViewSet(AuditedModelMixin, viewsets.ModelViewSet):
    queryset = User.objects.all().order_by("username")
    serializer_class = UserSerializer
    permission_classes = [RolePermission]
    lookup_field = "user_code"
    audit_collection = AuditCollection.USERS
    audit_entity = "user"
    capability_map = {
        "list": ["users.view"],
        "retrieve": ["users.view"],
        "create": ["users.manage"],
        "partial_update": ["users.manage"],
        "update": ["users.manage"],
        "destroy": ["users.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        query = self.request.query_params.get("q")
        if query:
            query = query.strip()
            queryset = queryset.filter(
                Q(username__icontains=query) | Q(email__icontains=query) | Q(user_code__icontains=query)
            )
        role = self.request.query_params.get("role")
        if role:
            queryset = queryset.filter(role=role.strip().upper())
        return queryset

    def perform_destroy(self, instance):
        if instance.pk == self.request.user.pk:
            raise ValidationError({"user_code": "you cannot delete your own account"})
        super().perform_destroy(instance)


class LoginView(TokenObtainPairView):
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as exc:
            raise InvalidToken(exc.args[0])

        user = serializer.user
        record_audit(
            actor=user,
            action=AuditAction.LOGIN,
            collection=AuditCollection.USERS,
            entity_code=user.user_code,
            changes="login-user",
        )
        return Response(serializer.validated_data, status=status.HTTP_200_OK)


class LogoutView(GenericAPIView):
    serializer_class = LogoutSerializer
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        record_audit(
            actor=request.user,
            action=AuditAction.LOGOUT,
            collection=AuditCollection.USERS,
            entity_code=request.user.user_code,
            changes="logout-user",
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class ChangePasswordView(GenericAPIView):
    serializer_class = ChangePasswordSerializer
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        record_audit(
            actor=user,
            action=AuditAction.CHANGE_PASSWORD,
            collection=AuditCollection.USERS,
            entity_code=user.user_code,
            changes="change-password",
        )
        return Response({"detail": "Password changed."}, status=status.HTTP_200_OK)
