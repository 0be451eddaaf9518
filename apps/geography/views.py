from django.db.models import Q
from rest_framework import viewsets
from rest_framework.filters import OrderingFilter

from apps.audit.mixins import AuditedModelMixin
from apps.audit.models import AuditCollection
from apps.common.permissions import RolePermission
from apps.geography.models import City, Country, State
from apps.geography.serializers import CitySerializer, CountrySerializer, StateSerializer

GEOGRAPHY_CAPABILITIES = {
    "list": ["geography.view"],
    "retrieve": ["geography.view"],
    "create": ["geography.manage"],
    "partial_update": ["geography.manage"],
    "update": ["geography.manage"],
    "destroy": ["geography.manage"],
}


class CountryViewSet(AuditedModelMixin, viewsets.ModelViewSet):
    queryset = Country.objects.all()
    serializer_class = CountrySerializer
    permission_classes = [RolePermission]
    capability_map = GEOGRAPHY_CAPABILITIES
    lookup_field = "country_code"
    filter_backends = [OrderingFilter]
    ordering_fields = ["name", "iso2", "iso3", "created_at", "updated_at"]
    audit_collection = AuditCollection.COUNTRIES
    audit_entity = "country"

    def get_queryset(self):
        queryset = super().get_queryset()
        query = self.request.query_params.get("q")
        if query:
            query = query.strip()
            queryset = queryset.filter(Q(name__icontains=query) | Q(iso2__iexact=query) | Q(iso3__iexact=query))
        return queryset


class StateViewSet(AuditedModelMixin, viewsets.ModelViewSet):
    queryset = State.objects.select_related("country")
    serializer_class = StateSerializer
    permission_classes = [RolePermission]
    capability_map = GEOGRAPHY_CAPABILITIES
    lookup_field = "state_code"
    filter_backends = [OrderingFilter]
    ordering_fields = ["name", "iso", "created_at", "updated_at"]
    audit_collection = AuditCollection.STATES
    audit_entity = "state"

    def get_queryset(self):
        queryset = super().get_queryset()
        query = self.request.query_params.get("q")
        if query:
            query = query.strip()
            queryset = queryset.filter(Q(name__icontains=query) | Q(iso__iexact=query))

        country_code = self.request.query_params.get("country_code")
        if country_code:
            queryset = queryset.filter(country__country_code=country_code.strip())
        return queryset


class CityViewSet(AuditedModelMixin, viewsets.ModelViewSet):
    queryset = City.objects.select_related("state", "country")
    serializer_class = CitySerializer
    permission_classes = [RolePermission]
    capability_map = GEOGRAPHY_CAPABILITIES
    lookup_field = "city_code"
    filter_backends = [OrderingFilter]
    ordering_fields = ["name", "created_at", "updated_at"]
    audit_collection = AuditCollection.CITIES
    audit_entity = "city"

    def get_queryset(self):
        queryset = super().get_queryset()
        query = self.request.query_params.get("q")
        if query:
            queryset = queryset.filter(name__icontains=query.strip())

        state_code = self.request.query_params.get("state_code")
        if state_code:
            queryset = queryset.filter(state__state_code=state_code.strip())

        country_code = self.request.query_params.get("country_code")
        if country_code:
            queryset = queryset.filter(country__country_code=country_code.strip())
        return queryset
