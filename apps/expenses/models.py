import uuid

from django.db import models


class ExpenseStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class ExpenseCategory(models.TextChoices):
    FOOD = "Food", "Food"
    TRANSPORTATION = "Transportation", "Transportation"
    MARKETING = "Marketing", "Marketing"
    DECORATIONS = "Decorations", "Decorations"
    EQUIPMENT = "Equipment", "Equipment"
    OTHER = "Other", "Other"


# approved and rejected are terminal
ALLOWED_TRANSITIONS = {
    ExpenseStatus.PENDING.value: {ExpenseStatus.APPROVED.value, ExpenseStatus.REJECTED.value},
}


class Expense(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=120)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    category = models.CharField(max_length=40, choices=ExpenseCategory.choices)
    description = models.TextField(null=True, blank=True)
    receipt_url = models.CharField(max_length=500, null=True, blank=True)
    status = models.CharField(max_length=16, choices=ExpenseStatus.choices, default=ExpenseStatus.PENDING)
    submitted_by = models.ForeignKey("accounts.User", on_delete=models.CASCADE, related_name="expenses")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["submitted_by", "created_at"], name="expense_owner_created_idx"),
            models.Index(fields=["submitted_by", "status"], name="expense_owner_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="expense_amount_gt_zero"),
        ]

    def __str__(self):
        return f"{self.title} ({self.category}, {self.amount})"

    def can_transition_to(self, new_status):
        return str(new_status) in ALLOWED_TRANSITIONS.get(str(self.status), set())
