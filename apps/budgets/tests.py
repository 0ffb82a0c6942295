from datetime import date, datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.sessions.models import Session
from django.core.cache import cache
from django.test import SimpleTestCase, override_settings
from rest_framework.test import APIClient, APITestCase

from apps.budgets import services
from apps.expenses.models import Expense, ExpenseStatus

User = get_user_model()

NOON_UTC = datetime(2026, 3, 2, 12, 0, tzinfo=dt_timezone.utc)


def expense(amount, category="Food", status=ExpenseStatus.APPROVED, created_at=NOON_UTC):
    return Expense(
        title=f"{category} {amount}",
        amount=Decimal(amount),
        category=category,
        status=status,
        created_at=created_at,
    )


class AggregatorTests(SimpleTestCase):
    def test_half_of_budget(self):
        expenses = [expense("25000.00"), expense("999.00", status=ExpenseStatus.PENDING)]
        summary = services.summarize(expenses)
        self.assertEqual(summary["total_expenses"], 2)
        self.assertEqual(summary["approved_count"], 1)
        self.assertEqual(summary["total_approved_amount"], Decimal("25000.00"))
        self.assertEqual(services.budget_utilization(summary["total_approved_amount"], Decimal("50000")), 50.0)

    def test_seventy_percent_scenario(self):
        expenses = [expense("3000.00", "Food"), expense("4000.00", "Transportation")]
        dashboard = services.build_dashboard(expenses, Decimal("10000"))

        self.assertEqual(dashboard["budget_utilization"], Decimal("70.00"))
        self.assertEqual(
            dashboard["category_breakdown"],
            [{"name": "Food", "value": Decimal("3000.00")}, {"name": "Transportation", "value": Decimal("4000.00")}],
        )
        self.assertEqual(dashboard["budget_status"], "warning")

    def test_budget_status_bands_are_half_open(self):
        self.assertEqual(services.budget_status(Decimal("69.99")), "success")
        self.assertEqual(services.budget_status(Decimal("70.00")), "warning")
        self.assertEqual(services.budget_status(Decimal("89.99")), "warning")
        self.assertEqual(services.budget_status(Decimal("90.00")), "destructive")
        self.assertEqual(services.budget_status(Decimal("140.00")), "destructive")
        self.assertEqual(services.budget_status(None), "unknown")

    def test_utilization_is_not_clamped(self):
        self.assertEqual(services.budget_utilization(Decimal("15000"), Decimal("10000")), Decimal("150.00"))

    def test_zero_budget_has_no_utilization(self):
        expenses = [expense("300.00")]
        dashboard = services.build_dashboard(expenses, Decimal("0"))
        self.assertIsNone(dashboard["budget_utilization"])
        self.assertEqual(dashboard["budget_status"], "unknown")
        food = next(row for row in dashboard["planner"] if row["category"] == "food")
        self.assertIsNone(food["percent"])
        self.assertIsNone(food["share_of_budget"])
        self.assertTrue(food["over_limit"])

    def test_breakdown_partitions_approved_total(self):
        expenses = [
            expense("120.50", "Food"),
            expense("80.25", "Marketing"),
            expense("19.25", "Food"),
            expense("500.00", "Equipment", status=ExpenseStatus.REJECTED),
            expense("70.00", "Other", status=ExpenseStatus.PENDING),
        ]
        total = services.summarize(expenses)["total_approved_amount"]
        breakdown = services.category_breakdown(expenses)
        self.assertEqual(sum(row["value"] for row in breakdown), total)
        self.assertEqual({row["name"] for row in breakdown}, {"Food", "Marketing"})

    def test_breakdown_is_case_sensitive(self):
        breakdown = services.category_breakdown([expense("10.00", "Food"), expense("5.00", "food")])
        self.assertEqual(
            breakdown,
            [{"name": "Food", "value": Decimal("10.00")}, {"name": "food", "value": Decimal("5.00")}],
        )

    @override_settings(TIME_ZONE="Asia/Kolkata")
    def test_trend_groups_by_local_day_in_ascending_order(self):
        expenses = [
            expense("40.00", created_at=NOON_UTC + timedelta(days=2)),
            expense("10.00", created_at=datetime(2026, 3, 1, 19, 0, tzinfo=dt_timezone.utc)),
            expense("15.00", created_at=NOON_UTC),
            expense("99.00", status=ExpenseStatus.PENDING, created_at=NOON_UTC - timedelta(days=5)),
        ]
        trend = services.spend_trend(expenses)

        self.assertEqual(
            trend,
            [
                {"date": date(2026, 3, 2), "amount": Decimal("25.00")},
                {"date": date(2026, 3, 4), "amount": Decimal("40.00")},
            ],
        )
        days = [row["date"] for row in trend]
        self.assertEqual(days, sorted(days))
        self.assertEqual(sum(row["amount"] for row in trend), services.summarize(expenses)["total_approved_amount"])

    def test_planner_matches_plan_keys_case_insensitively(self):
        expenses = [expense("3000.00", "Food"), expense("4000.00", "Transportation")]
        planner = {row["category"]: row for row in services.planner_utilization(expenses, Decimal("10000"))}

        self.assertEqual(list(planner), ["food", "logistics", "decoration", "tech", "guests", "misc"])
        self.assertEqual(planner["food"]["limit"], Decimal("2500.00"))
        self.assertEqual(planner["food"]["spent"], Decimal("3000.00"))
        self.assertEqual(planner["food"]["percent"], Decimal("120.00"))
        self.assertEqual(planner["food"]["bar_percent"], Decimal("100"))
        self.assertEqual(planner["food"]["share_of_budget"], 30)
        self.assertTrue(planner["food"]["over_limit"])
        self.assertEqual(planner["food"]["severity"], "suggestion")
        self.assertEqual(planner["logistics"]["spent"], Decimal("0.00"))
        self.assertEqual(planner["logistics"]["severity"], "ok")

    def test_strict_mode_only_changes_severity(self):
        expenses = [expense("3000.00", "Food")]
        relaxed = services.planner_utilization(expenses, Decimal("10000"))
        strict = services.planner_utilization(expenses, Decimal("10000"), strict=True)

        self.assertEqual(strict[0]["severity"], "hard_warning")
        for relaxed_row, strict_row in zip(relaxed, strict):
            self.assertEqual(
                {k: v for k, v in relaxed_row.items() if k != "severity"},
                {k: v for k, v in strict_row.items() if k != "severity"},
            )

    def test_plan_ratios_cover_whole_budget(self):
        ceilings = services.plan_ceilings(Decimal("50000"))
        self.assertEqual(sum(row["ratio"] for row in ceilings), Decimal("1.00"))
        self.assertEqual(sum(row["limit"] for row in ceilings), Decimal("50000.00"))

    def test_budget_warning_fires_once_per_user(self):
        cache.clear()
        self.assertIsNone(services.consume_budget_warning(7, Decimal("89.99"), Decimal("90")))
        self.assertIsNone(cache.get(services.budget_warning_key(7)))

        warning = services.consume_budget_warning(7, Decimal("92.50"), Decimal("90"))
        self.assertEqual(warning["title"], "Budget Limit Nearing!")
        self.assertIn("92.5%", warning["detail"])
        self.assertIsNone(services.consume_budget_warning(7, Decimal("99.00"), Decimal("90")))
        self.assertIsNotNone(services.consume_budget_warning(8, Decimal("99.00"), Decimal("90")))
        self.assertIsNone(services.consume_budget_warning(9, None, Decimal("90")))

        services.reset_budget_warning(7)
        self.assertIsNotNone(services.consume_budget_warning(7, Decimal("99.00"), Decimal("90")))


class DashboardApiTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.owner = User.objects.create_user(email="events@club.test", password="events-pass-123")
        self.other = User.objects.create_user(email="finance@club.test", password="finance-pass-123")
        self.tokens = self.client.post(
            "/api/v1/auth/token/",
            {"email": "events@club.test", "password": "events-pass-123"},
            format="json",
        ).data
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {self.tokens['access']}")

    def add(self, amount, category="Food", status=ExpenseStatus.APPROVED, owner=None):
        return Expense.objects.create(
            title=f"{category} spend",
            amount=Decimal(amount),
            category=category,
            status=status,
            submitted_by=owner or self.owner,
        )

    def test_dashboard_scenario(self):
        self.add("3000.00", "Food")
        self.add("4000.00", "Transportation")
        self.add("500.00", "Marketing", status=ExpenseStatus.PENDING)
        self.add("9000.00", "Food", owner=self.other)

        response = self.client.get("/api/v1/dashboard/", {"budget": "10000"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["total_expenses"], 3)
        self.assertEqual(response.data["approved_count"], 2)
        self.assertEqual(response.data["total_approved_amount"], Decimal("7000.00"))
        self.assertEqual(response.data["budget_utilization"], Decimal("70.00"))
        self.assertEqual(response.data["budget_status"], "warning")
        self.assertEqual(
            {row["name"]: row["value"] for row in response.data["category_breakdown"]},
            {"Food": Decimal("3000.00"), "Transportation": Decimal("4000.00")},
        )
        self.assertFalse(response.data["strict_mode"])
        self.assertIsNone(response.data["budget_warning"])

    def test_default_budget_applies(self):
        self.add("25000.00")
        response = self.client.get("/api/v1/dashboard/")
        self.assertEqual(response.data["budget"], Decimal("50000"))
        self.assertEqual(response.data["budget_utilization"], Decimal("50.00"))

    def test_strict_flag_is_reflected_in_planner(self):
        self.add("3000.00", "Food")
        response = self.client.get("/api/v1/dashboard/", {"budget": "10000", "strict": "true"})
        food = next(row for row in response.data["planner"] if row["category"] == "food")
        self.assertTrue(response.data["strict_mode"])
        self.assertEqual(food["severity"], "hard_warning")

    def test_invalid_budget_is_rejected(self):
        response = self.client.get("/api/v1/dashboard/", {"budget": "-5"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("budget", response.data["fields"])

    def test_zero_budget_reports_no_utilization(self):
        self.add("100.00")
        response = self.client.get("/api/v1/dashboard/", {"budget": "0"})
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.data["budget_utilization"])
        self.assertEqual(response.data["budget_status"], "unknown")

    def test_budget_warning_is_latched_per_sign_in(self):
        self.add("9500.00")
        first = self.client.get("/api/v1/dashboard/", {"budget": "10000"})
        self.assertEqual(first.data["budget_warning"]["title"], "Budget Limit Nearing!")

        second = self.client.get("/api/v1/dashboard/", {"budget": "10000"})
        self.assertIsNone(second.data["budget_warning"])

        logout = self.client.post("/api/v1/auth/logout/", {"refresh": self.tokens["refresh"]}, format="json")
        self.assertEqual(logout.status_code, 204)
        after_logout = self.client.get("/api/v1/dashboard/", {"budget": "10000"})
        self.assertIsNotNone(after_logout.data["budget_warning"])

    def test_budget_warning_latch_holds_for_token_only_clients(self):
        self.add("9500.00")
        shown = []
        for _ in range(3):
            client = APIClient()
            client.credentials(HTTP_AUTHORIZATION=f"Bearer {self.tokens['access']}")
            response = client.get("/api/v1/dashboard/", {"budget": "10000"})
            self.assertEqual(response.status_code, 200)
            shown.append(response.data["budget_warning"] is not None)

        self.assertEqual(shown, [True, False, False])
        self.assertEqual(Session.objects.count(), 0)

    def test_account_clear_resets_budget_warning(self):
        self.add("9500.00")
        self.assertIsNotNone(self.client.get("/api/v1/dashboard/", {"budget": "10000"}).data["budget_warning"])

        self.client.post("/api/v1/auth/account/clear/", {"confirmation": "DELETE MY ACCOUNT"}, format="json")
        self.add("9600.00")
        self.assertIsNotNone(self.client.get("/api/v1/dashboard/", {"budget": "10000"}).data["budget_warning"])

    def test_deleted_expense_leaves_every_aggregate(self):
        keep = self.add("1000.00", "Food")
        drop = self.add("2000.00", "Marketing")

        deleted = self.client.delete(f"/api/v1/expenses/{drop.id}/?confirm=true")
        self.assertEqual(deleted.status_code, 204)

        response = self.client.get("/api/v1/dashboard/", {"budget": "10000"})
        self.assertEqual(response.data["total_expenses"], 1)
        self.assertEqual(response.data["total_approved_amount"], keep.amount)
        self.assertEqual([row["name"] for row in response.data["category_breakdown"]], ["Food"])
        self.assertEqual(sum(row["amount"] for row in response.data["spend_trend"]), keep.amount)

    def test_dashboard_reflects_changes_made_outside_this_client(self):
        pending = self.add("600.00", status=ExpenseStatus.PENDING)
        approved = self.client.post(f"/api/v1/expenses/{pending.id}/approve/")
        self.assertEqual(approved.data["status"], "approved")

        # another session rejects the same row directly in the store
        Expense.objects.filter(pk=pending.pk).update(status=ExpenseStatus.REJECTED)

        response = self.client.get("/api/v1/dashboard/", {"budget": "10000"})
        self.assertEqual(response.data["approved_count"], 0)
        self.assertEqual(response.data["total_approved_amount"], Decimal("0.00"))
        detail = self.client.get(f"/api/v1/expenses/{pending.id}/")
        self.assertEqual(detail.data["status"], "rejected")

    def test_budget_plan_lists_ceilings(self):
        response = self.client.get("/api/v1/budget-plan/", {"budget": "20000"})
        self.assertEqual(response.status_code, 200)
        allocations = {row["category"]: row["limit"] for row in response.data["allocations"]}
        self.assertEqual(allocations["food"], Decimal("5000.00"))
        self.assertEqual(allocations["misc"], Decimal("2000.00"))
