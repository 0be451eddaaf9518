from django.db import models

from apps.common.codes import generate_code


def capitalize_words(value: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in (value or "").split())


def new_country_code():
    return generate_code("COUNTRY")


def new_state_code():
    return generate_code("STATE")


def new_city_code():
    return generate_code("CITY")


class Country(models.Model):
    country_code = models.CharField(max_length=64, unique=True, default=new_country_code, editable=False)
    name = models.CharField(max_length=80, unique=True)
    iso2 = models.CharField(max_length=2, unique=True)
    iso3 = models.CharField(max_length=3, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "countries"

    def save(self, *args, **kwargs):
        self.name = capitalize_words(self.name)
        self.iso2 = (self.iso2 or "").strip().upper()
        self.iso3 = (self.iso3 or "").strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name


class State(models.Model):
    state_code = models.CharField(max_length=64, unique=True, default=new_state_code, editable=False)
    name = models.CharField(max_length=80, unique=True)
    iso = models.CharField(max_length=10, unique=True)
    country = models.ForeignKey(Country, on_delete=models.PROTECT, related_name="states")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def save(self, *args, **kwargs):
        self.name = capitalize_words(self.name)
        self.iso = (self.iso or "").strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name


class City(models.Model):
    city_code = models.CharField(max_length=64, unique=True, default=new_city_code, editable=False)
    name = models.CharField(max_length=80, unique=True)
    state = models.ForeignKey(State, on_delete=models.PROTECT, related_name="cities")
    country = models.ForeignKey(Country, on_delete=models.PROTECT, related_name="cities")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "cities"

    def save(self, *args, **kwargs):
        self.name = capitalize_words(self.name)
        if self.state_id:
            self.country_id = self.state.country_id
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name
