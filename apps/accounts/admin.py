from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    fieldsets = DjangoUserAdmin.fieldsets + (("School", {"fields": ("role",)}),)
    list_display = ("user_code",) + DjangoUserAdmin.list_display + ("role",)
    readonly_fields = ("user_code",)
    search_fields = DjangoUserAdmin.search_fields + ("user_code",)
