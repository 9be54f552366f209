"""Configuration manager: load, save and validate the planner YAML.

Uses ruamel.yaml for YAML serialization with comments.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table
from rich import box
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from config.defaults import default_planner_config
from config.schema import PlannerConfig

logger = logging.getLogger(__name__)

console = Console()
yaml = YAML()
yaml.default_flow_style = False
yaml.width = 120


# ─── YAML COMMENTS ───

_YAML_HEADER = f"""\
# ============================================
# Revision planner: configuration
# Created: {date.today().isoformat()}
# The Gemini API key is read from the environment
# variable named in acquisition.api_key_env.
# ============================================
"""

_SECTION_COMMENTS = {
    "acquisition": (
        "Candidate acquisition",
        "provider: gemini (language model) or local (CP-SAT heuristic).",
    ),
    "planning": (
        "Planning policy",
        "Session targets per topic and homework defaults.",
    ),
    "solver": (
        "Local solver",
        "Weights: higher = stronger preference. 0 = disabled.",
    ),
    "output": (
        "Output",
        None,
    ),
    "logging": (
        "Logging",
        None,
    ),
}


class ConfigManager:
    CONFIG_DIR = Path("config")
    DEFAULT_CONFIG = CONFIG_DIR / "planner_config.yaml"

    def first_run_check(self) -> bool:
        """True if no config file exists yet."""
        return not self.DEFAULT_CONFIG.exists()

    # ─── Load ───

    def load(self, path: Optional[Path] = None) -> PlannerConfig:
        """Load config from YAML. Validated via Pydantic."""
        target = Path(path) if path else self.DEFAULT_CONFIG
        if not target.exists():
            raise FileNotFoundError(
                f"Config file not found: {target}\n"
                f"Run 'revision-planner init' to create one."
            )
        with open(target, "r", encoding="utf-8") as f:
            raw = yaml.load(f)
        try:
            return PlannerConfig.model_validate(dict(raw or {}))
        except ValidationError as e:
            raise ValueError(
                f"Config file invalid: {target}\n"
                f"Pydantic error: {e}"
            ) from e

    def load_or_default(self, path: Optional[Path] = None) -> PlannerConfig:
        """Like load(), but a missing file yields the defaults."""
        try:
            return self.load(path)
        except FileNotFoundError:
            logger.debug("No config file found, using defaults")
            return default_planner_config()

    # ─── Save ───

    def save(self, config: PlannerConfig, path: Optional[Path] = None) -> None:
        """Save config as commented YAML."""
        target = Path(path) if path else self.DEFAULT_CONFIG
        target.parent.mkdir(parents=True, exist_ok=True)

        data = self._build_commented_yaml(config)

        with open(target, "w", encoding="utf-8") as f:
            f.write(_YAML_HEADER + "\n")
            yaml.dump(data, f)

        console.print(f"[green]✓[/green] Config saved: {target}")

    def _build_commented_yaml(self, config: PlannerConfig) -> CommentedMap:
        raw = json.loads(config.model_dump_json())
        cm = CommentedMap(raw)

        for field, (label, comment) in _SECTION_COMMENTS.items():
            cm.yaml_set_comment_before_after_key(
                field,
                before=f"\n─── {label} ───" + (f"\n{comment}" if comment else ""),
            )

        acquisition = CommentedMap(cm["acquisition"])
        acquisition.yaml_add_eol_comment("seconds, 10-600", "timeout_seconds")
        cm["acquisition"] = acquisition

        return cm

    # ─── Display ───

    def print_config(self, config: PlannerConfig) -> None:
        """Print every section as a table."""
        for section, values in config.model_dump(mode="json").items():
            table = Table(title=section, box=box.SIMPLE, title_justify="left")
            table.add_column("Parameter", style="bold")
            table.add_column("Value")
            for k, v in values.items():
                table.add_row(k, str(v))
            console.print(table)
