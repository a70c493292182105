#!/usr/bin/env python3
"""
ptlayout: Reconstructs columns and reading-order paragraphs from PDF pages.

This script extracts positioned text fragments from a PDF with pdfminer, runs
the layout engine (ptlayout_lib.detector.LayoutDetector) on every selected page
and prints the detected paragraphs as a table, as JSON, as translation units or
as an ASCII layout map.
"""

import argparse
import json
import logging
import sys

# --- Dependency Imports ---
try:
    from rich.console import Console
    from rich.table import Table
except ImportError as e:
    print(f"Error: Missing required library. -> {e}")
    print("Please install all core dependencies with:")
    print("pip install pdfminer.six numpy scipy rich")
    sys.exit(1)

# --- Local Application Imports ---
from core.log_utils import ContextFilter, setup_logging
from ptlayout_lib.config import LayoutConfig, PresetStore, load_config
from ptlayout_lib.detector import LayoutDetector
from ptlayout_lib.pdf_source import iter_page_fragments, parse_page_selection
from ptlayout_lib.renderer import ASCIIRenderer
from ptlayout_lib.units import build_translation_units

log = logging.getLogger("ptlayout.cli")


class CustomHelpFormatter(
    argparse.ArgumentDefaultsHelpFormatter, argparse.RawTextHelpFormatter
):
    """
    A custom argparse formatter that combines showing default values with
    preserving newline formatting in help text.
    """

    pass


class Application:
    """Runs layout detection over the selected pages of one PDF."""

    DEFAULT_PRESETS_FILE = "ptlayout_presets.ini"

    def __init__(self, args):
        self.args = args
        self.console = Console()
        self._context_filter = None

    def run(self):
        """Main entry point for the application logic."""
        setup_logging(
            project_name="ptlayout",
            level=logging.INFO if self.args.verbose else logging.WARNING,
            color_logs=self.args.color_logs,
            debug_topics=self.args.debug_topics,
            log_file=self.args.log_file,
        )
        config = self._build_config()
        if self.args.save_preset:
            PresetStore(self.args.presets_file).save_preset(self.args.save_preset, config)
            log.info("Saved preset '%s'.", self.args.save_preset)

        pages = parse_page_selection(self.args.pages)
        detector = LayoutDetector(config)
        report = []
        for page_number, fragments, page_rect in iter_page_fragments(self.args.pdf_file, pages):
            self._set_log_context(f"p{page_number}")
            result = detector.detect_layout(fragments, page_rect, scale=self.args.scale)
            self._set_log_context("")
            if self.args.json:
                report.append(self._page_json(page_number, result))
            else:
                self._display_page(page_number, result, page_rect)

        if self.args.json:
            print(json.dumps({"pdf": self.args.pdf_file, "pages": report}, indent=2, ensure_ascii=False))

    def _build_config(self) -> LayoutConfig:
        """Layers config file, preset, --set overrides and flags, in that order."""
        config = load_config(self.args.config) if self.args.config else LayoutConfig()
        if self.args.preset:
            preset = PresetStore(self.args.presets_file).get_preset_mapping(self.args.preset)
            config = LayoutConfig.from_mapping(preset, base=config)
        overrides = {}
        for item in self.args.set or []:
            if "=" not in item:
                raise ValueError(f"Expected KEY=VALUE, got '{item}'")
            key, value = item.split("=", 1)
            overrides[key] = value
        if self.args.force_linear:
            overrides["force_linear_merge"] = True
        if self.args.validate:
            overrides["debug_validation"] = True
        return LayoutConfig.from_mapping(overrides, base=config) if overrides else config

    def _set_log_context(self, context: str):
        for handler in logging.getLogger().handlers:
            if self._context_filter:
                handler.removeFilter(self._context_filter)
        self._context_filter = ContextFilter(context) if context else None
        if self._context_filter:
            for handler in logging.getLogger().handlers:
                handler.addFilter(self._context_filter)

    def _page_json(self, page_number, result) -> dict:
        data = {"page": page_number, **result.to_dict()}
        if self.args.units:
            data["units"] = [
                {"id": u.unit_id, "text": u.text, "fragment_ids": list(u.fragment_ids)}
                for u in self._units(result)
            ]
        return data

    def _units(self, result):
        return build_translation_units(
            result.paragraphs,
            result.fragments,
            max_chars=self.args.max_chars,
            keep_style=self.args.keep_style,
        )

    def _display_page(self, page_number, result, page_rect):
        self.console.rule(f"[bold]Page {page_number}")
        summary = (
            f"line height {result.line_height:.1f} | "
            f"{result.column_report.columns} column(s) | "
            f"regions: "
            + ", ".join(f"{r.top:.0f}-{r.bottom:.0f}x{r.columns}" for r in result.regions)
        )
        self.console.print(summary)

        if self.args.ascii:
            self.console.print(ASCIIRenderer().render(result, page_rect), markup=False, highlight=False)

        if self.args.units:
            table = Table(title="Translation Units")
            table.add_column("ID", style="cyan", no_wrap=True)
            table.add_column("Text")
            for unit in self._units(result):
                table.add_row(unit.unit_id, unit.text)
            self.console.print(table)
            return

        table = Table(title="Paragraphs")
        table.add_column("#", justify="right", style="cyan")
        table.add_column("BBox", no_wrap=True)
        table.add_column("Frags", justify="right")
        table.add_column("Text")
        for i, para in enumerate(result.paragraphs):
            b = para.bbox
            table.add_row(
                str(i),
                f"{b.left:.0f},{b.top:.0f}-{b.right:.0f},{b.bottom:.0f}",
                str(len(para.fragment_ids)),
                para.text,
            )
        self.console.print(table)

    @staticmethod
    def parse_arguments(args=None):
        """Parses command-line arguments."""
        parser = argparse.ArgumentParser(
            description="Detect columns and reading-order paragraphs in PDF pages.",
            formatter_class=CustomHelpFormatter,
            add_help=False,
        )
        g_opts = parser.add_argument_group("Main Options")
        g_opts.add_argument("pdf_file", help="Path to the input PDF file.")
        g_opts.add_argument("-h", "--help", action="help", help="Show this help message and exit.")
        g_opts.add_argument(
            "-p",
            "--pages",
            default="all",
            metavar="PAGES",
            help="Pages to process, e.g., '1,3,5-7' or 'all'. (default: %(default)s)",
        )

        g_layout = parser.add_argument_group("Layout Configuration")
        g_layout.add_argument(
            "-c", "--config", metavar="FILE", default=None, help="INI file with a [layout] section."
        )
        g_layout.add_argument(
            "--preset",
            metavar="NAME",
            default=None,
            help="Apply a named preset (built-in: default, linear, strict).",
        )
        g_layout.add_argument(
            "--presets-file",
            metavar="FILE",
            default=Application.DEFAULT_PRESETS_FILE,
            help="INI file holding user presets. (default: %(default)s)",
        )
        g_layout.add_argument(
            "--save-preset",
            metavar="NAME",
            default=None,
            help="Store the effective settings as a named preset.",
        )
        g_layout.add_argument(
            "-s",
            "--set",
            action="append",
            metavar="KEY=VALUE",
            help="Override a single layout setting. May be repeated.",
        )
        g_layout.add_argument(
            "-L",
            "--force-linear",
            action="store_true",
            help="Ignore columns, strips and bands; merge by vertical proximity only.",
        )
        g_layout.add_argument(
            "--scale",
            type=float,
            default=1.0,
            help="Device-to-logical scale factor of the coordinates. (default: %(default)s)",
        )

        g_out = parser.add_argument_group("Script Output & Actions")
        g_out.add_argument("--json", action="store_true", help="Print results as JSON.")
        g_out.add_argument("--ascii", action="store_true", help="Draw an ASCII layout map.")
        g_out.add_argument(
            "-u", "--units", action="store_true", help="Show translation units instead of paragraphs."
        )
        g_out.add_argument(
            "--max-chars",
            type=int,
            default=7500,
            help="Paragraphs longer than this are split into sentences. (default: %(default)s)",
        )
        g_out.add_argument(
            "-K",
            "--keep-style",
            action="store_true",
            help="Mark bold/italic fragments with Markdown in unit text.",
        )
        g_out.add_argument(
            "--validate",
            action="store_true",
            help="Check that every fragment lands in exactly one paragraph.",
        )
        g_out.add_argument(
            "--log-file",
            metavar="FILE",
            default=None,
            help="Redirect all logging output to a specified file.",
        )
        g_out.add_argument(
            "--color-logs",
            action="store_true",
            help="Enable colored logging output. (default: %(default)s)",
        )
        g_out.add_argument(
            "-v",
            "--verbose",
            action="store_true",
            help="Enable INFO logging for detailed progress. (default: %(default)s)",
        )
        g_out.add_argument(
            "-d",
            "--debug",
            nargs="?",
            const="all",
            dest="debug_topics",
            metavar="TOPICS",
            help="Enable DEBUG logging (all,snapshot,gaps,regions,grid,merge,layout,units,config,pdf).",
        )
        return parser.parse_args(args)


def main():
    """Main entry point for the script."""
    # Basic logging config for early errors before full setup
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    try:
        args = Application.parse_arguments(sys.argv[1:])
        app = Application(args)
        app.run()
    except (FileNotFoundError, ValueError, KeyError) as e:
        logging.getLogger("ptlayout").critical(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logging.getLogger("ptlayout").info("\nProcess interrupted by user. Exiting.")
        sys.exit(0)
    except Exception as e:
        logging.getLogger("ptlayout").critical(
            "\nAn unexpected error occurred: %s", e, exc_info=True
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
