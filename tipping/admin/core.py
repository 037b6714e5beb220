from django.contrib import admin, messages
import nested_admin

from ..models import Contest, Match, Stage


class MatchInline(nested_admin.NestedTabularInline):
    model = Match
    extra = 0
    fields = ("number", "team1", "team2", "kickoff", "winner")
    ordering = ["number"]


class StageInline(nested_admin.NestedStackedInline):
    model = Stage
    extra = 0
    fields = (
        ("name", "identifier", "order"),
        "scoring_mode",
        ("base_points", "pool_size", "draw_points"),
        ("chips_enabled", "late_penalty"),
    )
    ordering = ["order"]
    inlines = [MatchInline]


@admin.register(Contest)
class ContestAdmin(nested_admin.NestedModelAdmin):
    list_display = ["name", "slug", "submission_deadline", "is_active"]
    list_filter = ["is_active"]
    search_fields = ["name", "description"]
    readonly_fields = ["slug"]
    inlines = [StageInline]
    actions = ["recompute_leaderboards", "queue_leaderboard_refresh"]

    @admin.action(description="Recompute leaderboard for selected contests")
    def recompute_leaderboards(self, request, queryset):
        for contest in queryset:
            try:
                result = contest.recompute_leaderboard()
            except Exception as e:
                self.message_user(
                    request,
                    f"Error recomputing leaderboard for '{contest.name}': {e}",
                    messages.ERROR,
                )
                continue
            self.message_user(
                request,
                f"Leaderboard for '{contest.name}' recomputed with "
                f"{result.participant_count} participants.",
                messages.SUCCESS,
            )

    @admin.action(description="Queue leaderboard refresh for selected contests")
    def queue_leaderboard_refresh(self, request, queryset):
        from tipping.tasks.leaderboard import schedule_leaderboard_refresh

        queued = sum(1 for contest in queryset if schedule_leaderboard_refresh(contest))
        self.message_user(
            request, f"Queued {queued} leaderboard refresh task(s).", messages.INFO
        )


@admin.register(Match)
class MatchAdmin(admin.ModelAdmin):
    list_display = ["number", "team1", "team2", "winner", "stage", "contest", "kickoff"]
    list_filter = ["contest", "stage"]
    search_fields = ["team1", "team2"]
    ordering = ["contest", "number"]
