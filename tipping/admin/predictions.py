from django.contrib import admin
import nested_admin

from ..models import (
    BonusAdjustment,
    BonusAnswer,
    BonusCategory,
    ChipActivation,
    Participant,
    Prediction,
)


class PredictionInline(nested_admin.NestedTabularInline):
    model = Prediction
    extra = 0
    fields = ("match", "team")
    autocomplete_fields = ["match"]


class ChipActivationInline(nested_admin.NestedTabularInline):
    model = ChipActivation
    extra = 0
    max_num = 2
    fields = ("kind", "match")
    autocomplete_fields = ["match"]


@admin.register(Participant)
class ParticipantAdmin(nested_admin.NestedModelAdmin):
    list_display = ["name", "contest", "user", "submitted_at"]
    list_filter = ["contest"]
    search_fields = ["name", "user__username"]
    inlines = [PredictionInline, ChipActivationInline]


class BonusAnswerInline(nested_admin.NestedTabularInline):
    model = BonusAnswer
    extra = 0
    fields = ("participant", "answer")


@admin.register(BonusCategory)
class BonusCategoryAdmin(nested_admin.NestedModelAdmin):
    list_display = ["name", "contest", "correct_answer", "order"]
    list_filter = ["contest"]
    inlines = [BonusAnswerInline]


@admin.register(BonusAdjustment)
class BonusAdjustmentAdmin(admin.ModelAdmin):
    list_display = ["participant", "contest", "points", "reason"]
    list_filter = ["contest"]
