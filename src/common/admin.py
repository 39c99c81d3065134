import typing as t

from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html
from unfold.admin import ModelAdmin

from . import models


@admin.register(models.SiteSettings)
class SiteSettingsAdmin(ModelAdmin):  # type: ignore[misc]
    list_display = ["__str__", "live_emails", "updated_at"]
    readonly_fields = ["created_at", "updated_at"]
    fieldsets = (
        ("Notifications", {"fields": ("live_emails",)}),
        ("URLs & Emails", {"fields": ("frontend_base_url", "internal_catchall_email")}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )


@admin.register(models.EmailLog)
class EmailLogAdmin(ModelAdmin):  # type: ignore[misc]
    list_display = ["recipient_link", "subject", "sent_at", "attachment_names"]
    list_filter = ["sent_at"]
    search_fields = ["to", "subject"]
    readonly_fields = ["id", "created_at", "updated_at", "sent_at", "attachment_names", "body", "html"]
    exclude = ["compressed_body", "compressed_html"]
    date_hierarchy = "sent_at"
    ordering = ["-sent_at"]

    def recipient_link(self, obj: models.EmailLog) -> str:
        from accounts.models import StagepassUser

        user = StagepassUser.objects.filter(email=obj.to).first()
        if user is None:
            return obj.to
        url = reverse("admin:accounts_stagepassuser_change", args=[user.id])
        return format_html('<a href="{}">{}</a>', url, obj.to)

    recipient_link.short_description = "To"  # type: ignore[attr-defined]

    def has_add_permission(self, request: t.Any) -> bool:
        return False

    def has_change_permission(self, request: t.Any, obj: t.Any = None) -> bool:
        return False
