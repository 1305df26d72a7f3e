# crm_core/views_stats.py

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncMonth
from django.utils.timezone import localtime, now
from drf_spectacular.utils import extend_schema
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from crm_core.identity import actor_for_user, display_name
from crm_core.models import Customer, CustomerActivity
from crm_core.permissions import IsAnalyticsViewer, IsInstallationViewer
from crm_core.workflows import (
    ARCHIVED,
    CUSTOMER_STATUSES,
    INSTALLATION_COMPLETE,
    READY_FOR_INSTALLATION,
    SALESPERSON,
    SOLD,
    STATUS_LABELS,
)


RANGES = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "6m": timedelta(days=182),
    "1y": timedelta(days=365),
}
DEFAULT_RANGE = "30d"

# A customer counts as won once it has reached any of these.
WON_STATUSES = (SOLD, READY_FOR_INSTALLATION, INSTALLATION_COMPLETE, ARCHIVED)


def _since(request):
    key = (request.query_params.get("range") or DEFAULT_RANGE).strip().lower()
    if key not in RANGES:
        raise ValidationError({"range": f"Use one of: {', '.join(RANGES)}."})
    return key, now() - RANGES[key]


def _status_counts(qs) -> dict:
    counts = dict(qs.values_list("status").annotate(n=Count("id")).order_by())
    return {s: counts.get(s, 0) for s in CUSTOMER_STATUSES}


def _money(value) -> str:
    return str(value if value is not None else Decimal("0.00"))


def _conversion(won: int, total: int) -> float:
    if not total:
        return 0.0
    return round(won * 100.0 / total, 1)


class StatsOverviewView(APIView):
    """
    GET /crm/stats/overview/?range=30d

    Pipeline-wide numbers for internal staff and admins.
    """
    permission_classes = [IsAnalyticsViewer]

    @extend_schema(tags=["Stats"])
    def get(self, request):
        range_key, since = _since(request)

        customers = Customer.objects.all()
        recent = customers.filter(created_at__gte=since)
        won_recent = customers.filter(status__in=WON_STATUSES, sale_date__gte=since.date())

        status_counts = _status_counts(customers)
        total = sum(status_counts.values())
        won_total = sum(status_counts[s] for s in WON_STATUSES)

        User = get_user_model()
        sellers = (
            User.objects.filter(is_active=True, crm_profile__role=SALESPERSON)
            .annotate(
                customer_count=Count("assigned_customers", distinct=True),
                won_count=Count(
                    "assigned_customers",
                    filter=Q(assigned_customers__status__in=WON_STATUSES),
                    distinct=True,
                ),
                revenue=Sum(
                    "assigned_customers__sale_amount",
                    filter=Q(
                        assigned_customers__status__in=WON_STATUSES,
                        assigned_customers__sale_date__gte=since.date(),
                    ),
                ),
            )
            .order_by("-won_count", "username")
        )

        return Response(
            {
                "range": range_key,
                "since": since,
                "totals": {
                    "customers": total,
                    "new_customers": recent.count(),
                    "won_in_range": won_recent.count(),
                    "revenue_in_range": _money(won_recent.aggregate(v=Sum("sale_amount"))["v"]),
                    "unassigned": customers.filter(assigned_to__isnull=True).count(),
                    "conversion_rate": _conversion(won_total, total),
                },
                "by_status": [
                    {"status": s, "label": STATUS_LABELS[s], "count": status_counts[s]}
                    for s in CUSTOMER_STATUSES
                ],
                "status_changes_in_range": CustomerActivity.objects.filter(
                    type=CustomerActivity.Type.STATUS_CHANGE,
                    performed_at__gte=since,
                ).count(),
                "salespeople": [
                    {
                        "id": u.id,
                        "name": display_name(u),
                        "customers": u.customer_count,
                        "won": u.won_count,
                        "revenue_in_range": _money(u.revenue),
                        "conversion_rate": _conversion(u.won_count, u.customer_count),
                    }
                    for u in sellers
                ],
            }
        )


class PersonalStatsView(APIView):
    """
    GET /crm/stats/personal/

    The caller's own pipeline: customers assigned to them.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Stats"])
    def get(self, request):
        actor = actor_for_user(request.user)
        month_start = now().date().replace(day=1)

        mine = Customer.objects.filter(assigned_to=request.user)
        status_counts = _status_counts(mine)
        total = sum(status_counts.values())
        won_total = sum(status_counts[s] for s in WON_STATUSES)
        won_month = mine.filter(status__in=WON_STATUSES, sale_date__gte=month_start)

        return Response(
            {
                "user_id": actor.id,
                "role": actor.role,
                "customers": total,
                "by_status": status_counts,
                "won": won_total,
                "won_this_month": won_month.count(),
                "revenue_this_month": _money(won_month.aggregate(v=Sum("sale_amount"))["v"]),
                "conversion_rate": _conversion(won_total, total),
                "activities_this_month": CustomerActivity.objects.filter(
                    performed_by_user=request.user,
                    performed_at__date__gte=month_start,
                ).count(),
            }
        )


class TeamStatsView(APIView):
    """
    GET /crm/stats/team/?range=30d

    Sales team leaderboard over customers created in the range, ranked
    by won deals.
    """
    permission_classes = [IsAnalyticsViewer]

    @extend_schema(tags=["Stats"])
    def get(self, request):
        range_key, since = _since(request)
        in_range = Q(assigned_customers__created_at__gte=since)
        won = in_range & Q(assigned_customers__status__in=WON_STATUSES)

        User = get_user_model()
        sellers = (
            User.objects.filter(is_active=True, crm_profile__role=SALESPERSON)
            .annotate(
                customer_count=Count("assigned_customers", filter=in_range, distinct=True),
                won_count=Count("assigned_customers", filter=won, distinct=True),
                revenue=Sum("assigned_customers__sale_amount", filter=won),
            )
            .order_by("-won_count", "username")
        )

        rows = []
        revenue_total = Decimal("0.00")
        for rank, u in enumerate(sellers, start=1):
            revenue_total += u.revenue or Decimal("0.00")
            rows.append(
                {
                    "id": u.id,
                    "rank": rank,
                    "name": display_name(u),
                    "email": u.email,
                    "customers": u.customer_count,
                    "won": u.won_count,
                    "revenue": _money(u.revenue),
                    "conversion_rate": _conversion(u.won_count, u.customer_count),
                }
            )

        recent = Customer.objects.filter(created_at__gte=since)
        status_counts = _status_counts(recent)
        won_total = sum(r["won"] for r in rows)

        return Response(
            {
                "range": range_key,
                "since": since,
                "team_size": len(rows),
                "totals": {
                    "customers": sum(r["customers"] for r in rows),
                    "won": won_total,
                    "revenue": _money(revenue_total),
                    "average_conversion_rate": (
                        round(sum(r["conversion_rate"] for r in rows) / len(rows), 1) if rows else 0.0
                    ),
                },
                "salespeople": rows,
                "by_status": [
                    {"status": s, "label": STATUS_LABELS[s], "count": status_counts[s]}
                    for s in CUSTOMER_STATUSES
                    if status_counts[s]
                ],
            }
        )


class InstallationStatsView(APIView):
    """
    GET /crm/stats/installations/?range=30d

    Installer dashboard. Queue sizes are current; the monthly breakdown
    covers customers last touched within the range.
    """
    permission_classes = [IsInstallationViewer]

    @extend_schema(tags=["Stats"])
    def get(self, request):
        range_key, since = _since(request)
        month_start = localtime(now()).replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        customers = Customer.objects.all()
        pending = customers.filter(status=READY_FOR_INSTALLATION)
        completed = customers.filter(status=INSTALLATION_COMPLETE)
        pending_count = pending.count()
        completed_count = completed.count()

        buckets = {SOLD: "scheduled", READY_FOR_INSTALLATION: "pending", INSTALLATION_COMPLETE: "completed"}
        monthly = {}
        rows = (
            customers.filter(updated_at__gte=since, status__in=list(buckets))
            .annotate(month=TruncMonth("updated_at"))
            .values("month", "status")
            .annotate(n=Count("id"))
            .order_by("month")
        )
        for row in rows:
            key = row["month"].strftime("%Y-%m")
            entry = monthly.setdefault(key, {"month": key, "scheduled": 0, "pending": 0, "completed": 0})
            entry[buckets[row["status"]]] += row["n"]

        def _card(c):
            return {
                "id": str(c.id),
                "name": c.name,
                "address": c.address,
                "city": c.city,
                "updated_at": c.updated_at,
            }

        return Response(
            {
                "range": range_key,
                "since": since,
                "totals": {
                    "pending": pending_count,
                    "completed": completed_count,
                    "completed_this_month": completed.filter(updated_at__gte=month_start).count(),
                    "backlog": customers.filter(status=SOLD).count(),
                    "completion_rate": _conversion(completed_count, completed_count + pending_count),
                },
                "monthly": list(monthly.values()),
                "upcoming": [_card(c) for c in pending.order_by("updated_at")[:5]],
                "recent_completions": [_card(c) for c in completed.order_by("-updated_at")[:10]],
            }
        )
