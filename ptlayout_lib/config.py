"""
ptlayout_lib/config.py: Layout engine tunables and the INI-backed preset store.

`LayoutConfig` is immutable; derive variants with `dataclasses.replace` or
`LayoutConfig.from_mapping`.
"""
import configparser
import dataclasses
import logging
import os
from dataclasses import dataclass

log = logging.getLogger("ptlayout.config")

DEFAULT_SECTION = "layout"


@dataclass(frozen=True)
class LayoutConfig:
    """All layout-detection tunables, with the defaults used in production."""

    # --- Orchestrator ---
    line_height_multiplier: float = 1.6
    min_strip_confidence: float = 0.7
    min_strip_width_px: float = 4.0
    max_iter_merges: int = 10
    min_band_confidence: float = 0.6
    band_top_bottom_threshold_multiplier: float = 0.75
    inferred_band_confidence: float = 0.8
    band_merge_gap_px: float = 2.0
    band_merge_gap_line_height_multiplier: float = 0.2
    max_gap_fraction_of_page_height: float = 0.5
    min_gaps_for_trim: int = 5
    trim_percent: float = 0.15
    line_height_from_avg_multiplier: float = 1.25
    floor_multiplier: float = 0.8
    min_overlap_frac_for_band: float = 0.4
    min_region_width: float = 1.0
    column_threshold_line_height_multiplier: float = 2.0
    column_threshold_fallback: float = 20.0
    respect_region_transitions: bool = True
    debug_validation: bool = False

    # --- Paragraph merger ---
    force_linear_merge: bool = False
    min_strip_confidence_split: float = 0.7
    split_min_strip_width_px: float = 6.0
    min_strip_overlap_frac: float = 0.6
    initial_merge_baseline_tol: float = 0.45
    initial_merge_baseline_tol_math: float = 0.75
    initial_merge_kern_tol: float = 0.55
    initial_merge_kern_tol_math: float = 0.9
    hyphen_continuation_tol: float = 1.8
    initial_merge_align_tol: float = 2.0
    initial_merge_align_tol_math: float = 2.5
    initial_merge_vertical_gap_multiplier: float = 1.3
    initial_merge_vertical_gap_max_multiplier: float = 2.2
    stacked_merge_align_tol: float = 2.0
    stacked_merge_overlap_frac: float = 0.25
    stacked_merge_vertical_gap_multiplier: float = 1.35
    stacked_merge_vertical_gap_max_multiplier: float = 2.0
    general_merge_align_tol: float = 2.0
    general_merge_overlap_frac: float = 0.25
    general_merge_vertical_gap_multiplier: float = 1.35
    general_merge_vertical_gap_max_multiplier: float = 2.0
    nested_merge_overlap_frac: float = 0.7
    stitch_baseline_tol: float = 0.45
    stitch_baseline_tol_math: float = 0.75
    stitch_kern_tol: float = 0.55
    stitch_kern_tol_math: float = 0.9
    max_weight_diff: int = 300
    allow_mixed_style: bool = True
    same_column_coverage_ratio: float = 0.65
    math_merge_baseline_tol: float = 2.0
    math_merge_horiz_tol: float = 1.5
    math_merge_center_tol: float = 2.5
    split_line_height_tol: float = 0.7
    split_boundary_dedup_tol: float = 0.3
    split_inter_word_gap_tol: float = 1.2
    split_column_gap_tol: float = 2.5

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in dataclasses.fields(cls)]

    @classmethod
    def from_mapping(cls, values: dict, base: "LayoutConfig | None" = None):
        """Builds a config from loosely-typed values (INI strings, CLI args).

        Unknown keys are logged and ignored. Raises ValueError when a known key
        holds a value that cannot be converted to the field's type.
        """
        base = base or cls()
        types = {f.name: f.type for f in dataclasses.fields(cls)}
        overrides = {}
        for key, raw in values.items():
            name = key.strip().lower().replace("-", "_")
            if name not in types:
                log.warning("Ignoring unknown layout setting '%s'.", key)
                continue
            overrides[name] = _coerce(name, raw, types[name])
        return dataclasses.replace(base, **overrides)

    def to_mapping(self, only_changed: bool = False) -> dict:
        """Returns the settings as strings, suitable for configparser."""
        defaults = LayoutConfig()
        out = {}
        for name in self.field_names():
            value = getattr(self, name)
            if only_changed and value == getattr(defaults, name):
                continue
            out[name] = str(value).lower() if isinstance(value, bool) else str(value)
        return out


def _coerce(name, raw, field_type):
    type_name = field_type if isinstance(field_type, str) else field_type.__name__
    if type_name == "bool":
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Invalid boolean for '{name}': {raw!r}")
    try:
        if type_name == "int":
            return int(float(raw)) if isinstance(raw, str) else int(raw)
        return float(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for '{name}': {raw!r}") from e


def load_config(path: str, section: str = DEFAULT_SECTION) -> LayoutConfig:
    """Reads a LayoutConfig from an INI file, falling back to defaults."""
    parser = configparser.ConfigParser()
    if not parser.read(path):
        log.info("Config file not found at %s. Using defaults.", path)
        return LayoutConfig()
    if not parser.has_section(section):
        log.warning("No [%s] section in %s. Using defaults.", section, path)
        return LayoutConfig()
    log.debug("Loaded layout settings from %s [%s]", path, section)
    return LayoutConfig.from_mapping(dict(parser.items(section)))


BUILTIN_PRESETS = {
    "default": {},
    "linear": {"force_linear_merge": True},
    "strict": {"allow_mixed_style": False, "max_weight_diff": 0},
}


class PresetStore:
    """Manages named layout presets persisted as sections of an INI file."""

    def __init__(self, path: str):
        self.path = path

    def _read(self) -> configparser.ConfigParser:
        parser = configparser.ConfigParser()
        if os.path.exists(self.path):
            parser.read(self.path)
        return parser

    def _write(self, parser: configparser.ConfigParser):
        try:
            with open(self.path, "w") as fh:
                parser.write(fh)
            log.info("Presets saved to %s", self.path)
        except IOError as e:
            log.error("Failed to write presets to %s: %s", self.path, e)
            raise

    def list_presets(self) -> list[str]:
        names = set(BUILTIN_PRESETS) | set(self._read().sections())
        return sorted(names)

    def get_preset_mapping(self, name: str) -> dict:
        """Returns the settings a preset names explicitly; stored presets shadow built-in ones."""
        parser = self._read()
        if parser.has_section(name):
            return dict(parser.items(name))
        if name in BUILTIN_PRESETS:
            return dict(BUILTIN_PRESETS[name])
        raise KeyError(f"Unknown preset: {name}")

    def get_preset(self, name: str) -> LayoutConfig:
        return LayoutConfig.from_mapping(self.get_preset_mapping(name))

    def save_preset(self, name: str, config: LayoutConfig):
        parser = self._read()
        parser[name] = config.to_mapping(only_changed=True)
        self._write(parser)

    def delete_preset(self, name: str) -> bool:
        parser = self._read()
        if not parser.remove_section(name):
            log.debug("Preset '%s' not stored; nothing to delete.", name)
            return False
        self._write(parser)
        return True
