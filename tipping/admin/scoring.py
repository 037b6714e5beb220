from django.contrib import admin

from ..models import LeaderboardEntry, LeaderboardSnapshot


class LeaderboardEntryInline(admin.TabularInline):
    model = LeaderboardEntry
    extra = 0
    can_delete = False
    fields = (
        "rank",
        "previous_rank",
        "participant_name",
        "stage_points",
        "bonus_points",
        "penalty",
        "total_points",
        "chips_used",
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(LeaderboardSnapshot)
class LeaderboardSnapshotAdmin(admin.ModelAdmin):
    list_display = ["contest", "computed_at", "entry_count"]
    list_filter = ["contest"]
    date_hierarchy = "computed_at"
    readonly_fields = ["contest", "computed_at"]
    inlines = [LeaderboardEntryInline]

    def entry_count(self, obj):
        return obj.entries.count()

    entry_count.short_description = "Entries"
