"""Load commission rules from a JSON configuration file.

File format: a list of rules, or ``{"rules": [...]}``.  Each rule::

    {
        "name": "SUV premium",
        "description": "",
        "commission_type": "tiered",
        "parameters": {"basis": "profit", "bands": [...]},
        "vehicle_category": "SUV",
        "min_sale_price": "20000000",
        "max_sale_price": null,
        "min_profit_margin": "8.5",
        "is_active": true
    }

Rules are matched by name against the current active version.  A changed
rule that commissions already reference gets a new version; an unreferenced
one is updated in place.
"""
from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from pathlib import Path

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from commissions.models import CommissionRule

RULE_FIELDS = (
    "description",
    "commission_type",
    "parameters",
    "vehicle_category",
    "min_sale_price",
    "max_sale_price",
    "min_profit_margin",
)


def _decimal_or_none(value, field: str, name: str):
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise CommandError(f"Regle '{name}': {field} invalide ({value!r}).")


class Command(BaseCommand):
    help = "Load (create or version) commission rules from a JSON file."

    def add_arguments(self, parser):
        parser.add_argument("path", help="Path to the JSON rules file.")
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Validate and report changes without writing anything.",
        )
        parser.add_argument(
            "--deactivate-missing",
            action="store_true",
            help="Deactivate active rules whose name is absent from the file.",
        )

    def handle(self, *args, **options):
        definitions = self._read(options["path"])
        dry_run = bool(options.get("dry_run"))

        with transaction.atomic():
            counts = {"created": 0, "versioned": 0, "updated": 0, "unchanged": 0, "deactivated": 0}
            for definition in definitions:
                counts[self._apply(definition)] += 1

            if options.get("deactivate_missing"):
                names = {definition["name"] for definition in definitions}
                stale = CommissionRule.objects.filter(is_active=True).exclude(name__in=names)
                counts["deactivated"] += stale.update(is_active=False)

            if dry_run:
                transaction.set_rollback(True)

        summary = ", ".join(f"{key}: {value}" for key, value in counts.items())
        prefix = "[dry-run] " if dry_run else ""
        self.stdout.write(self.style.SUCCESS(f"{prefix}Commission rules loaded ({summary})."))

    def _read(self, path: str) -> list[dict]:
        file_path = Path(path)
        if not file_path.exists():
            raise CommandError(f"File not found: {path}")
        try:
            payload = json.loads(file_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise CommandError(f"Invalid JSON in {path}: {exc}")

        if isinstance(payload, dict):
            payload = payload.get("rules")
        if not isinstance(payload, list):
            raise CommandError("Expected a list of rules or an object with a 'rules' list.")

        definitions = []
        seen = set()
        for index, raw in enumerate(payload, start=1):
            if not isinstance(raw, dict) or not (raw.get("name") or "").strip():
                raise CommandError(f"Rule #{index}: 'name' is required.")
            name = raw["name"].strip()
            if name in seen:
                raise CommandError(f"Rule '{name}' appears twice in the file.")
            seen.add(name)
            definitions.append({
                "name": name,
                "description": raw.get("description") or "",
                "commission_type": raw.get("commission_type") or "",
                "parameters": raw.get("parameters") or {},
                "vehicle_category": raw.get("vehicle_category") or "",
                "min_sale_price": _decimal_or_none(raw.get("min_sale_price"), "min_sale_price", name),
                "max_sale_price": _decimal_or_none(raw.get("max_sale_price"), "max_sale_price", name),
                "min_profit_margin": _decimal_or_none(
                    raw.get("min_profit_margin"), "min_profit_margin", name,
                ),
                "is_active": bool(raw.get("is_active", True)),
            })
        return definitions

    def _validate(self, rule: CommissionRule) -> None:
        try:
            rule.full_clean(exclude=["supersedes"])
        except ValidationError as exc:
            raise CommandError(f"Rule '{rule.name}' is invalid: {exc.message_dict}")

    def _apply(self, definition: dict) -> str:
        name = definition["name"]
        current = (
            CommissionRule.objects.filter(name=name, is_active=True)
            .order_by("-version")
            .first()
        )

        if current is None:
            rule = CommissionRule(**definition)
            self._validate(rule)
            rule.save()
            self.stdout.write(f"  + {name} (v{rule.version})")
            return "created"

        changes = {
            field: definition[field]
            for field in RULE_FIELDS
            if getattr(current, field) != definition[field]
        }
        if not definition["is_active"]:
            current.is_active = False
            current.save(update_fields=["is_active", "updated_at"])
            self.stdout.write(f"  - {name} deactivated")
            return "deactivated"
        if not changes:
            return "unchanged"

        if current.is_referenced:
            try:
                successor = current.create_new_version(**changes)
            except ValidationError as exc:
                raise CommandError(f"Rule '{name}' is invalid: {exc.message_dict}")
            self.stdout.write(f"  ~ {name} v{current.version} -> v{successor.version}")
            return "versioned"

        for field, value in changes.items():
            setattr(current, field, value)
        self._validate(current)
        current.save()
        self.stdout.write(f"  ~ {name} updated in place (v{current.version})")
        return "updated"
