#!/usr/bin/env python3
# Example usage of embedded_json_db
# Stores customers in ./data/customer.json and runs a few queries.

import logging
import os
from dataclasses import dataclass, field

from embedded_json_db import Driver, UpdateFailedError
from rich.console import Console

_console = Console(force_terminal=True, color_system="standard")


@dataclass
class Customer:
    id: str
    name: str
    age: int = 0
    contact: dict = field(default_factory=dict)

    @classmethod
    def identity(cls):
        return "customer"

    def identifier(self):
        return self.id


def progress_printer(evt):
    phase = evt.get("phase", "")
    pct = int(evt.get("pct", 0))
    msg = evt.get("msg", "")
    parts = [p for p in (phase, f"{pct}%", (f"- {msg}" if msg else "")) if p]
    _console.print("[progress] " + " ".join(parts), highlight=False)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    data_dir = os.path.join(os.path.dirname(__file__), "data")
    db = Driver(data_dir, indent=2, on_progress=progress_printer)

    # Upsert so the script can be run repeatedly
    db.upsert(Customer(id="C1", name="Alice", age=33, contact={"email": "alice@example.com"}))
    db.upsert(Customer(id="C2", name="Bob", age=17))
    db.upsert(Customer(id="C3", name="Carol", age=52, contact={"email": "carol@example.com"}))

    adults = db.open(Customer).where("age", ">=", 18).get().as_entity(Customer)
    for c in adults:
        _console.print(f"Adult: [bold]{c.name}[/bold] ({c.age})")

    # Two groups: minors OR anyone with an email on example.com
    rows = db.open(Customer).where("age", "<", 18).or_where("contact/email", "endswith", "@example.com").get().raw_array()
    _console.print("Minors or example.com:", [r["name"] for r in rows])

    bob = db.open(Customer).where("id", "=", "C2").first().as_entity(Customer)
    bob.age += 1
    db.update(bob)

    try:
        db.update(Customer(id="C9", name="Nobody"))
    except UpdateFailedError as e:
        _console.print(f"[yellow]{e}[/yellow]")

    db.delete(Customer(id="C3", name=""))
    _console.print("Left:", [r["id"] for r in db.open(Customer).get().raw_array()])

    if db.errors:
        _console.print("[red]Errors:[/red]", db.errors)


if __name__ == "__main__":
    main()
