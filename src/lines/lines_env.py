from pathlib import Path
import os
import tomllib
from pydantic import BaseModel, Field, ValidationError
from typing import Optional
from jinja2 import Template


DEFAULT_PALETTE = [
    "#FF6B6B",
    "#4ECDC4",
    "#45B7D1",
    "#96CEB4",
    "#FFEAA7",
    "#DFE6E9",
    "#74B9FF",
    "#A29BFE",
    "#FD79A8",
    "#FDCB6E",
    "#6C5CE7",
    "#00B894",
    "#E17055",
    "#B2BEC3",
    "#55EFC4",
]


# ─── Config Schema ─────────────────────────────────────────────────
class ScheduleConfig(BaseModel):
    horizon_months: int = Field(6, ge=0, le=60)


class UIConfig(BaseModel):
    ampm: bool = False
    dayfirst: bool = False
    yearfirst: bool = True


class VenueConfig(BaseModel):
    max_lines: int = Field(15, ge=1)
    palette: list[str] = Field(default_factory=lambda: list(DEFAULT_PALETTE))


class LoggingConfig(BaseModel):
    enabled: bool = True


class LinesConfig(BaseModel):
    title: str = "Lines Configuration"
    schedule: ScheduleConfig = ScheduleConfig()
    ui: UIConfig = UIConfig()
    venue: VenueConfig = VenueConfig()
    logging: LoggingConfig = LoggingConfig()


# ─── Commented Template ────────────────────────────────────
CONFIG_TEMPLATE = """\
title = "{{ title }}"

[schedule]
# horizon_months: int = how many calendar months of dates are
# generated ahead of the anchor date for weekly and monthly lines.
horizon_months = {{ schedule.horizon_months }}

[ui]
# ampm: bool = true | false
ampm = {{ ui.ampm | lower }}

# dayfirst: bool = true | false
dayfirst = {{ ui.dayfirst | lower }}

# yearfirst: bool = true | false
yearfirst = {{ ui.yearfirst | lower }}

[venue]
# max_lines: int = the most lines a single venue may define.
max_lines = {{ venue.max_lines }}

# palette: list[str] = line colors, assigned in order to new lines.
# A venue can never have more lines than there are colors here.
palette = [
{% for color in venue.palette %}    "{{ color }}",
{% endfor %}]

[logging]
# enabled: bool = write log_msg entries to logs/log_<YYMMDD>.md
enabled = {{ logging.enabled | lower }}

"""

# ─── Save Config with Comments ───────────────────────────────


def render_config(config: LinesConfig) -> str:
    template = Template(CONFIG_TEMPLATE)
    return template.render(**config.model_dump()).strip() + "\n"


def save_config_from_template(config: LinesConfig, path: Path):
    path.write_text(render_config(config), encoding="utf-8")
    print(f"✅ Config with comments written to: {path}")


# ─── Main Environment Class ───────────────────────────────


class LinesEnvironment:
    def __init__(self):
        self._home = self._resolve_home()
        self._config: Optional[LinesConfig] = None

    @property
    def home(self) -> Path:
        return self._home

    @property
    def config_path(self) -> Path:
        return self.home / "config.toml"

    @property
    def db_path(self) -> Path:
        return self.home / "lines.db"

    def ensure(self, init_config: bool = True, init_db_fn=None):
        self.home.mkdir(parents=True, exist_ok=True)

        if init_config and not self.config_path.exists():
            save_config_from_template(LinesConfig(), self.config_path)

        if init_db_fn and not self.db_path.exists():
            init_db_fn(self.db_path)

    def load_config(self) -> LinesConfig:
        # Step 1: Create the file if it doesn't exist
        if not self.config_path.exists():
            config = LinesConfig()
            self.home.mkdir(parents=True, exist_ok=True)
            self.config_path.write_text(render_config(config), encoding="utf-8")
            print(f"✅ Created new config file at {self.config_path}")
            self._config = config
            return config

        # Step 2: Try to load and validate the config
        try:
            with open(self.config_path, "rb") as f:
                data = tomllib.load(f)
            config = LinesConfig.model_validate(data)
        except (ValidationError, tomllib.TOMLDecodeError) as e:
            print(f"⚠️ Config error in {self.config_path}: {e}\nUsing defaults.")
            config = LinesConfig()

        # Step 3: Always regenerate the canonical version
        rendered = render_config(config)
        current_text = self.config_path.read_text(encoding="utf-8")
        if rendered != current_text:
            self.config_path.write_text(rendered, encoding="utf-8")
            print(f"✅ Updated {self.config_path} with any missing defaults.")

        self._config = config
        return config

    @property
    def config(self) -> LinesConfig:
        if self._config is None:
            return self.load_config()
        return self._config

    def _resolve_home(self) -> Path:
        cwd = Path.cwd()
        if (cwd / "config.toml").exists() and (cwd / "lines.db").exists():
            return cwd

        env_home = os.getenv("LINES_HOME")
        if env_home:
            return Path(env_home).expanduser()

        xdg_home = os.getenv("XDG_CONFIG_HOME")
        if xdg_home:
            return Path(xdg_home).expanduser() / "lines"
        else:
            return Path.home() / ".config" / "lines"
