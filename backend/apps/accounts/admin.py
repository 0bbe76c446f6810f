"""
Admin configuration for accounts app.
"""

from django.contrib import admin

from apps.accounts.models import User, UserProfile


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    """Admin for users."""

    list_display = ["id", "email", "name", "is_active", "is_staff", "created_at"]
    search_fields = ["email", "name"]
    readonly_fields = ["password", "last_login", "created_at", "updated_at"]


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    """Admin for organization profiles."""

    list_display = ["id", "user", "organization", "role", "created_at"]
    list_filter = ["role"]
    raw_id_fields = ["user", "organization"]
