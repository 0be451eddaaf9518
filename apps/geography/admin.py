from django.contrib import admin

from apps.geography.models import City, Country, State


@admin.register(Country)
class CountryAdmin(admin.ModelAdmin):
    list_display = ("name", "iso2", "iso3", "country_code", "updated_at")
    search_fields = ("name", "iso2", "iso3", "country_code")


@admin.register(State)
class StateAdmin(admin.ModelAdmin):
    list_display = ("name", "iso", "country", "state_code", "updated_at")
    list_filter = ("country",)
    search_fields = ("name", "iso", "state_code")
    autocomplete_fields = ("country",)


@admin.register(City)
class CityAdmin(admin.ModelAdmin):
    list_display = ("name", "state", "country", "city_code", "updated_at")
    list_filter = ("country", "state")
    search_fields = ("name", "city_code")
    autocomplete_fields = ("state",)
    readonly_fields = ("country",)
