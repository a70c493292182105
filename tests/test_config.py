import dataclasses

import pytest

from ptlayout_lib.config import LayoutConfig, PresetStore, load_config


def test_defaults():
    config = LayoutConfig()
    assert config.line_height_multiplier == 1.6
    assert config.max_iter_merges == 10
    assert config.force_linear_merge is False
    assert config.respect_region_transitions is True


def test_from_mapping_coerces_loose_values():
    config = LayoutConfig.from_mapping(
        {"Force-Linear-Merge": "yes", "max_iter_merges": "3", "trim_percent": "0.2"}
    )
    assert config.force_linear_merge is True
    assert config.max_iter_merges == 3
    assert config.trim_percent == 0.2


def test_from_mapping_layers_on_base():
    base = LayoutConfig(trim_percent=0.3)
    config = LayoutConfig.from_mapping({"max_weight_diff": 100}, base=base)
    assert config.trim_percent == 0.3
    assert config.max_weight_diff == 100


def test_from_mapping_ignores_unknown_keys(caplog):
    config = LayoutConfig.from_mapping({"no_such_setting": "1"})
    assert config == LayoutConfig()
    assert "no_such_setting" in caplog.text


@pytest.mark.parametrize(
    "values", [{"trim_percent": "abc"}, {"allow_mixed_style": "maybe"}, {"max_iter_merges": None}]
)
def test_from_mapping_rejects_bad_values(values):
    with pytest.raises(ValueError):
        LayoutConfig.from_mapping(values)


def test_to_mapping_only_changed():
    config = dataclasses.replace(LayoutConfig(), force_linear_merge=True, trim_percent=0.25)
    assert config.to_mapping(only_changed=True) == {
        "force_linear_merge": "true",
        "trim_percent": "0.25",
    }
    assert len(LayoutConfig().to_mapping()) == len(LayoutConfig.field_names())


def test_load_config(tmp_path):
    path = tmp_path / "layout.ini"
    path.write_text("[layout]\nforce_linear_merge = true\nmin_strip_confidence = 0.8\n")

    config = load_config(str(path))
    assert config.force_linear_merge is True
    assert config.min_strip_confidence == 0.8


def test_load_config_falls_back_to_defaults(tmp_path):
    assert load_config(str(tmp_path / "missing.ini")) == LayoutConfig()

    path = tmp_path / "other.ini"
    path.write_text("[something_else]\nkey = value\n")
    assert load_config(str(path)) == LayoutConfig()


def test_load_config_propagates_bad_values(tmp_path):
    path = tmp_path / "layout.ini"
    path.write_text("[layout]\ntrim_percent = lots\n")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_preset_store_roundtrip(tmp_path):
    store = PresetStore(str(tmp_path / "presets.ini"))
    assert store.list_presets() == ["default", "linear", "strict"]
    assert store.get_preset("linear").force_linear_merge is True

    custom = LayoutConfig(max_weight_diff=100, allow_mixed_style=False)
    store.save_preset("scans", custom)
    assert "scans" in store.list_presets()
    assert store.get_preset("scans") == custom

    assert store.delete_preset("scans") is True
    assert store.delete_preset("scans") is False
    with pytest.raises(KeyError):
        store.get_preset("scans")


def test_stored_preset_shadows_builtin(tmp_path):
    store = PresetStore(str(tmp_path / "presets.ini"))
    store.save_preset("linear", LayoutConfig(trim_percent=0.1))

    preset = store.get_preset("linear")
    assert preset.force_linear_merge is False
    assert preset.trim_percent == 0.1


def test_preset_mapping_keeps_values_equal_to_defaults(tmp_path):
    path = tmp_path / "presets.ini"
    path.write_text("[geo]\nforce_linear_merge = false\nmax_iter_merges = 10\n")
    store = PresetStore(str(path))

    assert store.get_preset_mapping("geo") == {"force_linear_merge": "false", "max_iter_merges": "10"}
    assert store.get_preset_mapping("linear") == {"force_linear_merge": True}
    with pytest.raises(KeyError):
        store.get_preset_mapping("missing")
