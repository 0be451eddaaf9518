from rest_framework import serializers
from rest_framework.validators import UniqueValidator

from apps.geography.models import City, Country, State


def _letters(value, length, field):
    value = value.strip()
    if len(value) != length or not value.isalpha():
        raise serializers.ValidationError(f"{field} must be {length} letters")
    return value.upper()


class CountrySummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Country
        fields = ["country_code", "name", "iso2", "iso3"]
        read_only_fields = fields


class StateSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = State
        fields = ["state_code", "name", "iso"]
        read_only_fields = fields


class CountrySerializer(serializers.ModelSerializer):
    name = serializers.CharField(
        max_length=80, validators=[UniqueValidator(queryset=Country.objects.all(), lookup="iexact")]
    )
    iso2 = serializers.CharField(
        max_length=2, validators=[UniqueValidator(queryset=Country.objects.all(), lookup="iexact")]
    )
    iso3 = serializers.CharField(
        max_length=3, validators=[UniqueValidator(queryset=Country.objects.all(), lookup="iexact")]
    )

    class Meta:
        model = Country
        fields = ["country_code", "name", "iso2", "iso3", "created_at", "updated_at"]
        read_only_fields = ["country_code", "created_at", "updated_at"]

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("name is required")
        return value

    def validate_iso2(self, value):
        return _letters(value, 2, "iso2")

    def validate_iso3(self, value):
        return _letters(value, 3, "iso3")


class StateSerializer(serializers.ModelSerializer):
    name = serializers.CharField(
        max_length=80, validators=[UniqueValidator(queryset=State.objects.all(), lookup="iexact")]
    )
    iso = serializers.CharField(
        max_length=10, validators=[UniqueValidator(queryset=State.objects.all(), lookup="iexact")]
    )
    country_code = serializers.SlugRelatedField(
        slug_field="country_code",
        queryset=Country.objects.all(),
        source="country",
        write_only=True,
    )
    country = CountrySummarySerializer(read_only=True)

    class Meta:
        model = State
        fields = ["state_code", "name", "iso", "country_code", "country", "created_at", "updated_at"]
        read_only_fields = ["state_code", "created_at", "updated_at"]

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("name is required")
        return value

    def validate_iso(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("iso is required")
        return value.upper()


class CitySerializer(serializers.ModelSerializer):
    name = serializers.CharField(
        max_length=80, validators=[UniqueValidator(queryset=City.objects.all(), lookup="iexact")]
    )
    state_code = serializers.SlugRelatedField(
        slug_field="state_code",
        queryset=State.objects.select_related("country"),
        source="state",
        write_only=True,
    )
    state = StateSummarySerializer(read_only=True)
    country = CountrySummarySerializer(read_only=True)

    class Meta:
        model = City
        fields = ["city_code", "name", "state_code", "state", "country", "created_at", "updated_at"]
        read_only_fields = ["city_code", "created_at", "updated_at"]

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("name is required")
        return value
