from django.contrib import admin

from apps.expenses.models import Expense


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ("title", "category", "amount", "status", "submitted_by", "created_at")
    list_filter = ("status", "category", "created_at")
    search_fields = ("title", "category", "description", "submitted_by__email")
    readonly_fields = ("submitted_by", "created_at")
