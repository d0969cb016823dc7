"""Editing session tying schema extraction, parsing, editing and generation."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from core.config.settings_loader import EditorSettings, default_settings
from core.mapping.changeset import compute_changes
from core.mapping.model import MappingModel
from core.mapping.models import BaselineSnapshot, ChangeSet, MappingRecord
from core.preview.sample_renderer import PreviewResult, render_preview
from core.schema.field_extractor import extract_fields, load_schema_text
from core.schema.models import FieldDescriptor
from core.templates.models import ParseResult
from core.templates.template_generator import generate_template
from core.templates.template_parser import parse_template

logger = logging.getLogger("ftlmap.core.session")

SESSION_PAYLOAD_VERSION = 1


class EditorSession:
    """One ephemeral editing session.

    Loads replace state wholesale; a failed schema load keeps the prior
    schema and field list.
    """

    def __init__(self, settings: EditorSettings | None = None) -> None:
        self.settings = settings or default_settings()
        self.input_schema: dict[str, Any] | None = None
        self.output_schema: dict[str, Any] | None = None
        self.input_fields: list[FieldDescriptor] = []
        self.output_fields: list[FieldDescriptor] = []
        self.template_text: str = ""
        self.model = MappingModel()

    def load_input_schema(self, text: str) -> list[FieldDescriptor]:
        document = load_schema_text(text)
        self.input_schema = document
        self.input_fields = self._extract(document)
        logger.info("loaded input schema with %d fields", len(self.input_fields))
        return self.input_fields

    def load_output_schema(self, text: str) -> list[FieldDescriptor]:
        document = load_schema_text(text)
        self.output_schema = document
        self.output_fields = self._extract(document)
        logger.info("loaded output schema with %d fields", len(self.output_fields))
        return self.output_fields

    def load_template(self, text: str) -> ParseResult:
        result = parse_template(
            text,
            max_lines=self.settings.max_template_lines,
            max_depth=self.settings.max_nesting_depth,
        )
        self.template_text = text
        self.model.replace_all(result.mappings)
        logger.info(
            "loaded template with %d mappings (%d skipped lines)",
            len(result.mappings),
            len(result.skipped),
        )
        return result

    def auto_map(self) -> list[MappingRecord]:
        return self.model.auto_map(self.input_fields, self.output_fields)

    def generate(self) -> str:
        return generate_template(
            self.model.records,
            indent=self.settings.indent,
            else_text=self.settings.conditional_else_text,
        )

    def changes(self) -> ChangeSet:
        return compute_changes(self.model.records, self.model.baseline)

    def preview(self, sample: dict[str, Any]) -> PreviewResult:
        return render_preview(
            self.model.records, sample, else_text=self.settings.conditional_else_text
        )

    def to_payload(self) -> dict[str, Any]:
        baseline = self.model.baseline
        return {
            "version": SESSION_PAYLOAD_VERSION,
            "input_fields": [asdict(item) for item in self.input_fields],
            "output_fields": [asdict(item) for item in self.output_fields],
            "mappings": [record.model_dump(mode="json") for record in self.model.records],
            "baseline": {
                "version": baseline.version,
                "records": [record.model_dump(mode="json") for record in baseline.records],
            },
        }

    @classmethod
    def from_payload(
        cls, payload: dict[str, Any], settings: EditorSettings | None = None
    ) -> EditorSession:
        session = cls(settings)
        session.input_fields = [FieldDescriptor(**item) for item in payload.get("input_fields", [])]
        session.output_fields = [
            FieldDescriptor(**item) for item in payload.get("output_fields", [])
        ]
        records = [MappingRecord.model_validate(item) for item in payload.get("mappings", [])]
        baseline_raw = payload.get("baseline") or {}
        baseline = BaselineSnapshot(
            version=int(baseline_raw.get("version", 0)),
            records=tuple(
                MappingRecord.model_validate(item) for item in baseline_raw.get("records", [])
            ),
        )
        session.model = MappingModel(records, baseline=baseline)
        return session

    def _extract(self, document: dict[str, Any]) -> list[FieldDescriptor]:
        return extract_fields(
            document,
            type_aliases=self.settings.type_aliases,
            max_depth=self.settings.max_schema_depth,
        )
