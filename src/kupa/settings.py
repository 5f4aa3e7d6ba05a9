import json
from pathlib import Path

from kupa.models import MatchOptions

CONFIG_DIR = Path.home() / ".config" / "kupa"
SETTINGS_PATH = CONFIG_DIR / "settings.json"

DEFAULTS = {
    "tolerance_ratio": 0.01,
    "min_tolerance_amount": 2.0,
    "days_before_charge": 1,
    "days_after_charge": 6,
    "max_combo_size": 4,
    "split_matches": True,
    "log_level": "WARNING",
}


def load_settings() -> dict:
    if SETTINGS_PATH.exists():
        with open(SETTINGS_PATH) as f:
            saved = json.loads(f.read())
        return {**DEFAULTS, **saved}
    return dict(DEFAULTS)


def save_settings(settings: dict) -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    with open(SETTINGS_PATH, "w") as f:
        f.write(json.dumps(settings, indent=2) + "\n")


def match_options(settings: dict | None = None) -> MatchOptions:
    """Build reconciliation options from settings (loaded if not given)."""
    s = settings if settings is not None else load_settings()
    return MatchOptions(
        tolerance_ratio=float(s["tolerance_ratio"]),
        min_tolerance_amount=float(s["min_tolerance_amount"]),
        days_before_charge=int(s["days_before_charge"]),
        days_after_charge=int(s["days_after_charge"]),
        max_combo_size=max(2, int(s["max_combo_size"])),
        split_matches=bool(s["split_matches"]),
    )
