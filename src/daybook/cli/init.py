"""
`daybook init` command.

Policy layer:
- chooses defaults
- writes config
- creates the day database
"""

from pathlib import Path

import yaml

from daybook.db.daystore import DayStore
from daybook.db.workspace import default_cfg


def register(app):
    import typer

    @app.command()
    def init(
        path: Path = typer.Argument(Path.cwd(), help="Directory for the new workspace"),
        max_history: int = typer.Option(100, help="Undo steps kept per day"),
    ):
        path = path.resolve()
        path.mkdir(parents=True, exist_ok=True)

        daybook_dir = path / ".daybook"
        daybook_dir.mkdir(exist_ok=True)

        config_path = daybook_dir / "config.yml"
        if config_path.exists():
            print(f"Daybook workspace already initialized at {path}")
            return

        cfg = default_cfg()
        cfg["history"]["max_history_size"] = max_history

        with config_path.open("w") as f:
            yaml.safe_dump(cfg, f, sort_keys=False)

        # Create and migrate the day database up front
        DayStore.open(daybook_dir / cfg["storage"]["days"]).close()

        print(f"Initialized Daybook workspace at {path}")
