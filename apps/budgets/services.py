"""Spending aggregates for the dashboard.

Everything here is a pure function over a snapshot list of expenses (model
instances or anything exposing ``amount``, ``category``, ``status`` and an
aware ``created_at``) plus a budget figure. Amounts and percentages are
``Decimal``; a percentage of a zero or missing budget is ``None``. The one-shot
budget warning is the exception: its latch is kept in the cache per user.

Category breakdown groups by the category exactly as stored, while the
planner matches plan keys case-insensitively, so ``"Food"`` lands in the
``food`` allocation but ``"Transportation"`` matches no plan key.
"""

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from apps.expenses.models import ExpenseStatus

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")

SUCCESS_BELOW = Decimal("70")
WARNING_BELOW = Decimal("90")


def approved_only(expenses):
    return [expense for expense in expenses if expense.status == ExpenseStatus.APPROVED]


def summarize(expenses):
    approved = approved_only(expenses)
    return {
        "total_expenses": len(expenses),
        "approved_count": len(approved),
        "total_approved_amount": sum((expense.amount for expense in approved), ZERO),
    }


def percent_of(part, whole):
    if whole is None or whole <= 0:
        return None
    return (part / whole * HUNDRED).quantize(CENTS, rounding=ROUND_HALF_UP)


def budget_utilization(approved_total, budget):
    return percent_of(approved_total, budget)


def budget_status(utilization):
    """Progress colour for the overall budget bar.

    The bands are half-open: 70.00 is already ``warning`` and 90.00 is
    already ``destructive``.
    """
    if utilization is None:
        return "unknown"
    if utilization < SUCCESS_BELOW:
        return "success"
    if utilization < WARNING_BELOW:
        return "warning"
    return "destructive"


def category_breakdown(expenses):
    totals = {}
    for expense in approved_only(expenses):
        totals[expense.category] = totals.get(expense.category, ZERO) + expense.amount
    return [{"name": name, "value": value} for name, value in totals.items()]


def spend_trend(expenses):
    totals = {}
    for expense in approved_only(expenses):
        day = timezone.localtime(expense.created_at).date()
        totals[day] = totals.get(day, ZERO) + expense.amount
    return [{"date": day, "amount": totals[day]} for day in sorted(totals)]


def plan_ceilings(budget, plan=None):
    plan = settings.BUDGET_PLAN if plan is None else plan
    budget = budget or ZERO
    return [
        {"category": key, "ratio": ratio, "limit": (budget * ratio).quantize(CENTS, rounding=ROUND_HALF_UP)}
        for key, ratio in plan.items()
    ]


def planner_utilization(expenses, budget, strict=False, plan=None):
    plan = settings.BUDGET_PLAN if plan is None else plan
    spent_by_key = {}
    for expense in approved_only(expenses):
        key = (expense.category or "").lower()
        if key in plan:
            spent_by_key[key] = spent_by_key.get(key, ZERO) + expense.amount

    rows = []
    for ceiling in plan_ceilings(budget, plan):
        spent = spent_by_key.get(ceiling["category"], ZERO)
        percent = percent_of(spent, ceiling["limit"])
        share = percent_of(spent, budget)
        over_limit = spent > ceiling["limit"]
        if over_limit:
            severity = "hard_warning" if strict else "suggestion"
        else:
            severity = "ok"
        rows.append(
            {
                **ceiling,
                "spent": spent,
                "percent": percent,
                "bar_percent": min(percent, HUNDRED) if percent is not None else None,
                "share_of_budget": int(share.to_integral_value(rounding=ROUND_HALF_UP)) if share is not None else None,
                "over_limit": over_limit,
                "severity": severity,
            }
        )
    return rows


def build_dashboard(expenses, budget, strict=False):
    summary = summarize(expenses)
    utilization = budget_utilization(summary["total_approved_amount"], budget)
    return {
        "budget": budget,
        "strict_mode": strict,
        **summary,
        "budget_utilization": utilization,
        "budget_status": budget_status(utilization),
        "category_breakdown": category_breakdown(expenses),
        "spend_trend": spend_trend(expenses),
        "planner": planner_utilization(expenses, budget, strict=strict),
    }


def budget_warning_key(user_id):
    return f"budgets:warning-shown:{user_id}"


def consume_budget_warning(user_id, utilization, threshold=None):
    """Return the near-limit warning once per signed-in user, then ``None``.

    The latch lives in the cache so it holds for bearer-token clients that
    carry no session cookie; sign-out clears it via ``reset_budget_warning``.
    """
    threshold = settings.BUDGET_WARNING_THRESHOLD if threshold is None else threshold
    if utilization is None or utilization < threshold:
        return None
    # add() only succeeds for the first caller while the key is unset.
    if not cache.add(budget_warning_key(user_id), True, timeout=settings.BUDGET_WARNING_LATCH_TTL_SECONDS):
        return None
    return {
        "title": "Budget Limit Nearing!",
        "detail": f"You have used {utilization:.1f}% of your budget. Consider reviewing your expenses.",
    }


def reset_budget_warning(user_id):
    cache.delete(budget_warning_key(user_id))
