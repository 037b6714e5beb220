from django.test import SimpleTestCase

from tipping.utils.scoring_schema import (
    StageConfigValidator,
    format_validation_errors,
    validate_stage_config,
    validate_stage_configs,
)


class StageConfigValidationTest(SimpleTestCase):
    """Tests for stage configuration schema validation."""

    def test_valid_fixed_per_pick_config(self):
        config = {
            "id": "group",
            "name": "Group Stage",
            "mode": "FixedPerPick",
            "base_points": 10,
            "draw_points": 5,
            "chips_enabled": True,
            "late_penalty": True,
        }
        is_valid, errors = validate_stage_config(config)
        self.assertTrue(is_valid, format_validation_errors(errors))
        self.assertEqual(len(errors), 0)

    def test_valid_pool_split_config(self):
        is_valid, errors = validate_stage_config({"id": "knockout", "mode": "PoolSplit", "pool": 160})
        self.assertTrue(is_valid, format_validation_errors(errors))

    def test_missing_mode(self):
        is_valid, errors = validate_stage_config({"id": "group"})
        self.assertFalse(is_valid)
        self.assertIn("mode", errors[0].path)

    def test_unknown_mode(self):
        is_valid, errors = validate_stage_config({"id": "group", "mode": "Elo"})
        self.assertFalse(is_valid)
        self.assertIn("Unknown mode", errors[0].message)

    def test_missing_id(self):
        is_valid, errors = validate_stage_config({"mode": "FixedPerPick", "base_points": 10})
        self.assertFalse(is_valid)
        self.assertEqual(errors[0].path, "id")

    def test_fixed_per_pick_requires_base_points(self):
        is_valid, errors = validate_stage_config({"id": "group", "mode": "FixedPerPick"})
        self.assertFalse(is_valid)
        self.assertTrue(any("base_points" in e.path for e in errors))

    def test_pool_split_requires_pool(self):
        is_valid, errors = validate_stage_config({"id": "ko", "mode": "PoolSplit"})
        self.assertFalse(is_valid)
        self.assertTrue(any("pool" in e.path for e in errors))

    def test_pool_must_be_positive(self):
        is_valid, errors = validate_stage_config({"id": "ko", "mode": "PoolSplit", "pool": 0})
        self.assertFalse(is_valid)
        self.assertIn("positive", errors[0].message)

    def test_negative_points_rejected(self):
        is_valid, errors = validate_stage_config(
            {"id": "group", "mode": "FixedPerPick", "base_points": -5}
        )
        self.assertFalse(is_valid)
        self.assertIn("negative", errors[0].message)

    def test_boolean_points_rejected(self):
        is_valid, errors = validate_stage_config(
            {"id": "group", "mode": "FixedPerPick", "base_points": True}
        )
        self.assertFalse(is_valid)
        self.assertIn("integer", errors[0].message)

    def test_flags_must_be_boolean(self):
        is_valid, errors = validate_stage_config(
            {"id": "group", "mode": "FixedPerPick", "base_points": 10, "chips_enabled": "yes"}
        )
        self.assertFalse(is_valid)
        self.assertIn("boolean", errors[0].message)

    def test_chips_not_allowed_on_pool_split(self):
        is_valid, errors = validate_stage_config(
            {"id": "ko", "mode": "PoolSplit", "pool": 160, "chips_enabled": True}
        )
        self.assertFalse(is_valid)
        self.assertIn("PoolSplit", errors[0].message)

    def test_late_penalty_not_allowed_on_pool_split(self):
        is_valid, errors = validate_stage_config(
            {"id": "ko", "mode": "PoolSplit", "pool": 160, "late_penalty": True}
        )
        self.assertFalse(is_valid)

    def test_non_dict_config(self):
        is_valid, errors = validate_stage_config(["group"])
        self.assertFalse(is_valid)
        self.assertIn("dictionary", errors[0].message)

    def test_validator_resets_between_calls(self):
        validator = StageConfigValidator()
        validator.validate({"id": "group"})
        is_valid, errors = validator.validate({"id": "ko", "mode": "PoolSplit", "pool": 10})
        self.assertTrue(is_valid)
        self.assertEqual(errors, [])


class StageConfigListValidationTest(SimpleTestCase):
    def test_valid_stage_list(self):
        is_valid, errors = validate_stage_configs(
            [
                {"id": "group", "mode": "FixedPerPick", "base_points": 10, "chips_enabled": True},
                {"id": "ko", "mode": "PoolSplit", "pool": 160},
            ]
        )
        self.assertTrue(is_valid, format_validation_errors(errors))

    def test_not_a_list(self):
        is_valid, errors = validate_stage_configs({"id": "group"})
        self.assertFalse(is_valid)
        self.assertIn("array", errors[0].message)

    def test_duplicate_ids(self):
        is_valid, errors = validate_stage_configs(
            [
                {"id": "group", "mode": "FixedPerPick", "base_points": 10},
                {"id": "group", "mode": "FixedPerPick", "base_points": 5},
            ]
        )
        self.assertFalse(is_valid)
        self.assertEqual(errors[0].path, "stages[1].id")

    def test_only_one_chip_stage(self):
        is_valid, errors = validate_stage_configs(
            [
                {"id": "a", "mode": "FixedPerPick", "base_points": 10, "chips_enabled": True},
                {"id": "b", "mode": "FixedPerPick", "base_points": 10, "chips_enabled": True},
            ]
        )
        self.assertFalse(is_valid)
        self.assertIn("Only one stage", errors[0].message)

    def test_error_paths_are_indexed(self):
        is_valid, errors = validate_stage_configs([{"id": "group", "mode": "FixedPerPick"}])
        self.assertFalse(is_valid)
        self.assertEqual(errors[0].path, "stages[0].base_points")


class FormatValidationErrorsTest(SimpleTestCase):
    def test_no_errors(self):
        self.assertEqual(format_validation_errors([]), "No errors")

    def test_formats_paths(self):
        _, errors = validate_stage_config({"id": "group", "mode": "FixedPerPick"})
        formatted = format_validation_errors(errors)
        self.assertTrue(formatted.startswith("Stage configuration validation errors:"))
        self.assertIn("  - base_points: Mode 'FixedPerPick' requires field 'base_points'", formatted)
